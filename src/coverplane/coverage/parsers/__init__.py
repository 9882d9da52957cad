"""Coverage parser registry.

This module provides:
- PARSER_REGISTRY: All available parsers
- parse_artifact: Parse a coverage file
- parse_bytes: Parse in-memory artifact data
"""

from collections.abc import Sequence
from pathlib import Path

from coverplane.coverage.models import CoverageParseError, CoverageRecord

from .base import CoverageParser
from .lcov import LcovParser

PARSER_REGISTRY: Sequence[CoverageParser] = (LcovParser(),)

PARSER_BY_FORMAT: dict[str, CoverageParser] = {p.format_id: p for p in PARSER_REGISTRY}

__all__ = [
    "PARSER_REGISTRY",
    "PARSER_BY_FORMAT",
    "parse_artifact",
    "parse_bytes",
    "CoverageParser",
    "LcovParser",
]


def _parser_for(format_id: str) -> CoverageParser:
    parser = PARSER_BY_FORMAT.get(format_id)
    if not parser:
        valid = ", ".join(sorted(PARSER_BY_FORMAT.keys()))
        raise CoverageParseError(f"Unknown coverage format: {format_id!r}. Valid formats: {valid}")
    return parser


def parse_artifact(
    path: Path,
    *,
    project: str = "",
    format_id: str = "lcov",
    base_path: Path | None = None,
) -> CoverageRecord:
    """Parse a coverage artifact into a CoverageRecord.

    Args:
        path: Path to coverage file.
        project: Owning project name stored on the record.
        format_id: Interchange format of the file.
        base_path: Base path for normalizing file paths within the artifact.

    Raises:
        CoverageParseError: If format unknown or parsing fails.
    """
    return _parser_for(format_id).parse(path, project=project, base_path=base_path)


def parse_bytes(
    data: bytes,
    *,
    project: str = "",
    artifact: str | None = None,
    format_id: str = "lcov",
    base_path: Path | None = None,
    relative_root: Path | None = None,
) -> CoverageRecord:
    """Parse in-memory artifact data (defaults to lcov).

    ``relative_root`` anchors relative source paths before they are made
    relative to ``base_path``.
    """
    return _parser_for(format_id).parse_bytes(
        data,
        project=project,
        artifact=artifact,
        base_path=base_path,
        relative_root=relative_root,
    )
