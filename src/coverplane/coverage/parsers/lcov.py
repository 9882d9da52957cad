"""LCOV format parser.

LCOV format is a plain text format with records like:
- TN:<test name>
- SF:<source file path>
- FN:<line>[,<end line>],<name>
- FNDA:<hit count>,<name>
- FNL:<index>,<start line>[,<end line>]   (lcov 2.x)
- FNA:<index>,<hit count>,<name>         (lcov 2.x)
- BRDA:<line>,<block>,<branch>,<taken|->
- DA:<line>,<hit count>[,<checksum>]
- LF/LH/BRF/BRH/FNF/FNH:<count>
- end_of_record

Used by: cargo-llvm-cov, pytest-cov, gcov/lcov, dart test.

Unlike a best-effort reader this parser is strict: anything it cannot
interpret raises CoverageParseError with the offending line number, so a
corrupt artifact fails its project instead of silently losing data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from coverplane.coverage.merge import fold_file_into
from coverplane.coverage.models import (
    BranchCoverage,
    CoverageParseError,
    CoverageRecord,
    FileCoverage,
    FunctionCoverage,
)
from coverplane.coverage.paths import canonical_path

# Summary tags are recomputed on write; they are validated but not stored
_SUMMARY_TAGS = frozenset({"LF", "LH", "BRF", "BRH", "FNF", "FNH"})


@dataclass
class _Block:
    """Accumulator for one SF ... end_of_record block."""

    coverage: FileCoverage
    start_line_number: int
    fn_lines: dict[str, int] = field(default_factory=dict)  # name -> start line
    fn_hits: dict[str, int] = field(default_factory=dict)  # name -> hits
    fnl_index: dict[str, int] = field(default_factory=dict)  # FNL index -> start line

    def finish(self) -> FileCoverage:
        for name, start_line in self.fn_lines.items():
            self.coverage.functions[name] = FunctionCoverage(
                name=name,
                start_line=start_line,
                hits=self.fn_hits.get(name, 0),
            )
        return self.coverage


class LcovParser:
    """Parser for LCOV format coverage files."""

    @property
    def format_id(self) -> str:
        return "lcov"

    def parse(
        self,
        path: Path,
        *,
        project: str = "",
        base_path: Path | None = None,
    ) -> CoverageRecord:
        """Parse LCOV file into CoverageRecord."""
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CoverageParseError(f"Failed to read LCOV file: {e}", artifact=str(path)) from e
        return self.parse_bytes(data, project=project, artifact=str(path), base_path=base_path)

    def parse_bytes(
        self,
        data: bytes,
        *,
        project: str = "",
        artifact: str | None = None,
        base_path: Path | None = None,
        relative_root: Path | None = None,
    ) -> CoverageRecord:
        """Parse LCOV bytes into CoverageRecord."""
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError as e:
            line_number = data[: e.start].count(b"\n") + 1
            raise CoverageParseError(
                "Invalid UTF-8 in LCOV data", artifact=artifact, line_number=line_number
            ) from e

        files: dict[str, FileCoverage] = {}
        block: _Block | None = None

        for line_number, raw in enumerate(content.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                block = _consume(files, block, line, line_number, base_path, relative_root)
            except ValueError as e:
                raise CoverageParseError(
                    str(e), artifact=artifact, line_number=line_number
                ) from None

        if block is not None:
            raise CoverageParseError(
                f"Truncated LCOV data: block for {block.coverage.path!r} has no end_of_record",
                artifact=artifact,
                line_number=block.start_line_number,
            )

        return CoverageRecord(project=project, files=files, source_format="lcov")


def _consume(
    files: dict[str, FileCoverage],
    block: _Block | None,
    line: str,
    line_number: int,
    base_path: Path | None,
    relative_root: Path | None,
) -> _Block | None:
    """Apply one LCOV line and return the open block afterwards.

    Raises:
        ValueError: If the line is malformed.
    """
    if line == "end_of_record":
        if block is None:
            raise ValueError("end_of_record without a preceding SF")
        _store(files, block.finish())
        return None

    tag, sep, value = line.partition(":")
    if not sep:
        raise ValueError(f"Expected '<TAG>:<value>', got {line!r}")

    if tag in ("TN", "VER"):
        return block

    if tag == "SF":
        if block is not None:
            raise ValueError(
                f"SF before end_of_record of block started at line {block.start_line_number}"
            )
        if not value.strip():
            raise ValueError("Empty source file path")
        path = canonical_path(value, base_path, relative_root)
        return _Block(coverage=FileCoverage(path=path), start_line_number=line_number)

    if block is None:
        raise ValueError(f"{tag} record outside of an SF block")

    if tag == "DA":
        parts = value.split(",")
        if len(parts) not in (2, 3):
            raise ValueError(f"DA expects '<line>,<hits>[,<checksum>]', got {value!r}")
        block.coverage.add_line(_line(parts[0]), _count(parts[1]))

    elif tag == "FN":
        parts = value.split(",", 2)
        if len(parts) == 3 and parts[1].strip().isdigit():
            # lcov 2.x and coverage.py: <start>,<end>,<name>
            _line(parts[1])
            parts = [parts[0], parts[2]]
        else:
            parts = value.split(",", 1)
        if len(parts) != 2 or not parts[1]:
            raise ValueError(f"FN expects '<line>[,<end>],<name>', got {value!r}")
        _declare(block, parts[1], _line(parts[0]))

    elif tag == "FNDA":
        hits_str, sep, name = value.partition(",")
        if not sep or not name:
            raise ValueError(f"FNDA expects '<hits>,<name>', got {value!r}")
        if name not in block.fn_lines:
            raise ValueError(f"FNDA for undeclared function {name!r}")
        block.fn_hits[name] = block.fn_hits.get(name, 0) + _count(hits_str)

    elif tag == "FNL":
        parts = value.split(",")
        if len(parts) not in (2, 3):
            raise ValueError(f"FNL expects '<index>,<start>[,<end>]', got {value!r}")
        block.fnl_index[parts[0]] = _line(parts[1])

    elif tag == "FNA":
        parts = value.split(",", 2)
        if len(parts) != 3 or not parts[2]:
            raise ValueError(f"FNA expects '<index>,<hits>,<name>', got {value!r}")
        index, hits_str, name = parts
        if index not in block.fnl_index:
            raise ValueError(f"FNA refers to undeclared function index {index!r}")
        _declare(block, name, block.fnl_index[index])
        block.fn_hits[name] = block.fn_hits.get(name, 0) + _count(hits_str)

    elif tag == "BRDA":
        parts = value.split(",")
        if len(parts) != 4:
            raise ValueError(f"BRDA expects '<line>,<block>,<branch>,<taken>', got {value!r}")
        block.coverage.add_branch(
            BranchCoverage(
                line=_line(parts[0]),
                block_id=_count(parts[1]),
                branch_id=_count(parts[2]),
                hits=None if parts[3] == "-" else _count(parts[3]),
            )
        )

    elif tag in _SUMMARY_TAGS:
        _count(value)

    else:
        raise ValueError(f"Unknown LCOV record type {tag!r}")

    return block


def _store(files: dict[str, FileCoverage], coverage: FileCoverage) -> None:
    """Add a finished block, folding repeated SF blocks for one path."""
    existing = files.get(coverage.path)
    if existing is None:
        files[coverage.path] = coverage
    else:
        fold_file_into(existing, coverage)


def _declare(block: _Block, name: str, start_line: int) -> None:
    known = block.fn_lines.get(name)
    block.fn_lines[name] = start_line if known is None else min(known, start_line)


def _count(text: str) -> int:
    """Parse a non-negative integer field."""
    try:
        value = int(text.strip())
    except ValueError:
        raise ValueError(f"Expected an integer, got {text!r}") from None
    if value < 0:
        raise ValueError(f"Negative count {value}")
    return value


def _line(text: str) -> int:
    """Parse a positive line number field."""
    value = _count(text)
    if value < 1:
        raise ValueError(f"Line numbers start at 1, got {value}")
    return value
