"""Tests for cvp merge command."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from coverplane.cli.main import cli

runner = CliRunner()

MANGLED = "_ZN7mycrate4main17h0123456789abcdefE"


@pytest.fixture
def artifacts(tmp_path: Path) -> tuple[Path, Path]:
    first = tmp_path / "p1.info"
    first.write_text(
        f"SF:src/lib.rs\nFN:3,{MANGLED}\nFNDA:1,{MANGLED}\nDA:3,1\nDA:4,0\nend_of_record\n"
    )
    second = tmp_path / "p2.info"
    second.write_text("SF:./src/lib.rs\nDA:4,2\nDA:9,0\nend_of_record\n")
    return first, second


class TestMergeCommand:
    def test_merges_into_file(self, tmp_path: Path, artifacts: tuple[Path, Path]) -> None:
        out = tmp_path / "merged.info"

        result = runner.invoke(cli, ["merge", *map(str, artifacts), "-o", str(out)])

        assert result.exit_code == 0, result.output
        merged = out.read_text()
        assert merged.count("SF:") == 1
        assert "DA:3,1\nDA:4,2\nDA:9,0\n" in merged
        assert "FN:3,mycrate::main" in merged
        assert "Merged 2 artifacts" in result.output

    def test_writes_stdout_by_default(self, artifacts: tuple[Path, Path]) -> None:
        result = runner.invoke(cli, ["merge", *map(str, artifacts)])
        assert result.exit_code == 0
        assert "SF:src/lib.rs\n" in result.output
        assert "end_of_record\n" in result.output

    def test_no_normalize_keeps_mangled_names(
        self, tmp_path: Path, artifacts: tuple[Path, Path]
    ) -> None:
        out = tmp_path / "merged.info"
        result = runner.invoke(
            cli, ["merge", str(artifacts[0]), "--no-normalize", "-o", str(out)]
        )
        assert result.exit_code == 0
        assert f"FN:3,{MANGLED}" in out.read_text()

    def test_base_path_relativizes(self, tmp_path: Path) -> None:
        artifact = tmp_path / "abs.info"
        artifact.write_text(f"SF:{tmp_path.as_posix()}/src/a.rs\nDA:1,1\nend_of_record\n")
        out = tmp_path / "merged.info"
        result = runner.invoke(
            cli, ["merge", str(artifact), "--base-path", str(tmp_path), "-o", str(out)]
        )
        assert result.exit_code == 0
        assert out.read_text().startswith("SF:src/a.rs\n")

    def test_malformed_artifact_fails_with_location(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.info"
        bad.write_text("SF:a.rs\nDA:1\nend_of_record\n")
        out = tmp_path / "merged.info"

        result = runner.invoke(cli, ["merge", str(bad), "-o", str(out)])

        assert result.exit_code == 1
        assert "bad.info:2:" in result.output
        assert not out.exists()

    def test_requires_artifacts(self) -> None:
        result = runner.invoke(cli, ["merge"])
        assert result.exit_code == 2
