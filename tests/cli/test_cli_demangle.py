"""Tests for cvp demangle command."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from coverplane.cli.main import cli

runner = CliRunner()

HASH = "17h0123456789abcdef"


class TestDemangleCommand:
    def test_stdin_to_stdout(self) -> None:
        text = f"FN:3,_ZN3foo3bar{HASH}E\nFNDA:1,_RNvCs1234_7mycrate4main\nDA:3,1\n"
        result = runner.invoke(cli, ["demangle"], input=text)
        assert result.exit_code == 0
        assert result.output == "FN:3,foo::bar\nFNDA:1,mycrate::main\nDA:3,1\n"

    def test_unmangled_text_unchanged(self) -> None:
        text = "plain text\n_Z3fooi stays\n"
        result = runner.invoke(cli, ["demangle"], input=text)
        assert result.output == text

    def test_files(self, tmp_path: Path) -> None:
        source = tmp_path / "in.txt"
        source.write_text(f"_ZN4core3fmt5write{HASH}E\n")
        target = tmp_path / "out.txt"

        result = runner.invoke(cli, ["demangle", "-i", str(source), "-o", str(target)])

        assert result.exit_code == 0
        assert target.read_text() == "core::fmt::write\n"
