"""Tests for core/progress.py module.

Covers:
- _is_tty() function
- status() function
- spinner() context manager
- pluralize() function
- suppress_console_logs() / is_console_suppressed()
"""

from __future__ import annotations

import sys
from io import StringIO
from unittest.mock import patch

import pytest

from coverplane.core.progress import (
    _STYLES,
    _is_tty,
    is_console_suppressed,
    pluralize,
    spinner,
    status,
    suppress_console_logs,
)


class TestIsTty:
    """Tests for _is_tty function."""

    def test_false_for_stringio(self) -> None:
        original = sys.stderr
        try:
            sys.stderr = StringIO()
            assert _is_tty() is False
        finally:
            sys.stderr = original


class TestStatus:
    """Tests for status function."""

    def test_prints_message(self) -> None:
        with patch("coverplane.core.progress._console") as mock_console:
            status("Collecting")
            mock_console.print.assert_called_once()

    @pytest.mark.parametrize(
        ("style", "mark"), [("success", "✓"), ("error", "✗"), ("warning", "!")]
    )
    def test_style_prefix(self, style: str, mark: str) -> None:
        with patch("coverplane.core.progress._console") as mock_console:
            status("Done", style=style)
            assert mark in mock_console.print.call_args[0][0]

    def test_with_indent(self) -> None:
        with patch("coverplane.core.progress._console") as mock_console:
            status("Indented", indent=4)
            assert mock_console.print.call_args[0][0].startswith("    ")

    def test_unknown_style_has_no_prefix(self) -> None:
        with patch("coverplane.core.progress._console") as mock_console:
            status("Plain", style="nope")
            assert mock_console.print.call_args[0][0] == "Plain"

    def test_styles_known(self) -> None:
        assert set(_STYLES) == {"success", "error", "warning", "info", "none"}


class TestSpinner:
    """Tests for spinner context manager."""

    def test_non_tty_prints_message_once(self) -> None:
        with (
            patch("coverplane.core.progress._is_tty", return_value=False),
            patch("coverplane.core.progress._console") as mock_console,
        ):
            with spinner("Collecting 2 projects"):
                pass
            mock_console.print.assert_called_once_with("Collecting 2 projects...")

    def test_tty_suppresses_console_logs(self) -> None:
        seen: list[bool] = []
        with (
            patch("coverplane.core.progress._is_tty", return_value=True),
            patch("coverplane.core.progress._console"),
        ):
            with spinner("Working"):
                seen.append(is_console_suppressed())
        assert seen == [True]
        assert not is_console_suppressed()

    def test_exception_propagates(self) -> None:
        with (
            patch("coverplane.core.progress._is_tty", return_value=False),
            patch("coverplane.core.progress._console"),
            pytest.raises(RuntimeError, match="boom"),
            spinner("Working"),
        ):
            raise RuntimeError("boom")


class TestPluralize:
    """Tests for pluralize function."""

    @pytest.mark.parametrize(
        ("count", "expected"),
        [(0, "0 projects"), (1, "1 project"), (3, "3 projects")],
    )
    def test_regular(self, count: int, expected: str) -> None:
        assert pluralize(count, "project") == expected

    def test_irregular(self) -> None:
        assert pluralize(2, "branch", "branches") == "2 branches"


class TestSuppressConsoleLogs:
    """Tests for the console suppression flag."""

    def test_flag_scoped_to_block(self) -> None:
        assert not is_console_suppressed()
        with suppress_console_logs():
            assert is_console_suppressed()
        assert not is_console_suppressed()

    def test_flag_reset_on_error(self) -> None:
        with pytest.raises(ValueError), suppress_console_logs():
            raise ValueError
        assert not is_console_suppressed()
