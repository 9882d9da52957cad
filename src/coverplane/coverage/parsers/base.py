"""Coverage parser protocol."""

from pathlib import Path
from typing import Protocol

from coverplane.coverage.models import CoverageRecord


class CoverageParser(Protocol):
    """Protocol for coverage format parsers.

    Each parser handles one interchange format and converts it to the
    unified CoverageRecord model.
    """

    @property
    def format_id(self) -> str:
        """Format identifier (e.g., 'lcov')."""
        ...

    def parse_bytes(
        self,
        data: bytes,
        *,
        project: str = "",
        artifact: str | None = None,
        base_path: Path | None = None,
        relative_root: Path | None = None,
    ) -> CoverageRecord:
        """Parse raw artifact bytes into a record.

        Raises:
            CoverageParseError: If the input is malformed.
        """
        ...

    def parse(
        self,
        path: Path,
        *,
        project: str = "",
        base_path: Path | None = None,
    ) -> CoverageRecord:
        """Parse a coverage file into a record.

        Args:
            path: Path to coverage file.
            project: Owning project name stored on the record.
            base_path: Workspace root for making absolute paths relative.
                      If None, paths in coverage data are used as-is.

        Raises:
            CoverageParseError: If reading or parsing fails.
        """
        ...
