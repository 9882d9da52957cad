"""Collection models.

One ProjectSpec goes in, one ProjectResult comes out. A result holds either
the project's normalized CoverageRecord or the reason collection failed,
never both.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from coverplane.core.errors import ErrorCode
from coverplane.coverage.models import CoverageRecord


class FailureReason(Enum):
    """Why a project produced no coverage record."""

    TIMEOUT = "timeout"  # Exceeded collect.timeout_sec, process killed
    TOOLCHAIN_ERROR = "toolchain_error"  # Missing executable or non-zero exit
    IO_ERROR = "io_error"  # Project root or artifact unreadable/unwritable
    PARSE_ERROR = "parse_error"  # Artifact is not valid lcov

    @property
    def error_code(self) -> ErrorCode:
        return _ERROR_CODES[self]


_ERROR_CODES = {
    FailureReason.TIMEOUT: ErrorCode.COLLECT_TIMEOUT,
    FailureReason.TOOLCHAIN_ERROR: ErrorCode.COLLECT_TOOLCHAIN_ERROR,
    FailureReason.IO_ERROR: ErrorCode.COLLECT_IO_ERROR,
    FailureReason.PARSE_ERROR: ErrorCode.PARSE_MALFORMED,
}


@dataclass(frozen=True, slots=True)
class ProjectSpec:
    """One sub-project whose coverage is collected in isolation."""

    name: str  # Display name, defaults to the workspace-relative root
    root: Path  # Absolute project root
    toolchain: str  # Registry id, see collect.toolchains
    artifact: str | None = None  # Existing lcov file ('artifact' toolchain)
    command: tuple[str, ...] | None = None  # Argv template ('command' toolchain)


@dataclass(frozen=True, slots=True)
class CollectionFailure:
    """A project's collection failed; isolated to that project."""

    project: str
    reason: FailureReason
    detail: str

    def to_dict(self) -> dict[str, str | int]:
        return {
            "project": self.project,
            "reason": self.reason.value,
            "code": self.reason.error_code.value,
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class ProjectResult:
    """Outcome of collecting one project."""

    project: str
    record: CoverageRecord | None = None
    failure: CollectionFailure | None = None
    duration_sec: float = 0.0
    passthrough_count: int = 0  # Function names left as-is by the normalizer
    artifact_path: Path | None = None  # Normalized lcov written inside the project

    def __post_init__(self) -> None:
        if (self.record is None) == (self.failure is None):
            raise ValueError("ProjectResult needs exactly one of record or failure")

    @property
    def ok(self) -> bool:
        return self.record is not None

    @classmethod
    def failed(
        cls,
        project: str,
        reason: FailureReason,
        detail: str,
        *,
        duration_sec: float = 0.0,
    ) -> ProjectResult:
        return cls(
            project=project,
            failure=CollectionFailure(project=project, reason=reason, detail=detail),
            duration_sec=duration_sec,
        )
