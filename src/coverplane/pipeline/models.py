"""Pipeline run summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from coverplane.collect.models import ProjectResult
from coverplane.core.errors import CoverplaneError
from coverplane.coverage.models import CoverageSummary, MergeConflict, UnifiedCoverageModel
from coverplane.publish.ops import PublishResult


class RunStatus(Enum):
    """Final state of one pipeline run."""

    SUCCESS = "success"  # Every project collected, report published
    PARTIAL = "partial"  # Lenient mode: some projects failed, report published
    COLLECTION_FAILED = "collection_failed"  # Strict failure or nothing collected
    PUBLISH_FAILED = "publish_failed"  # Render or publish failed, target untouched

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    RunStatus.SUCCESS: 0,
    RunStatus.PARTIAL: 0,
    RunStatus.COLLECTION_FAILED: 1,
    RunStatus.PUBLISH_FAILED: 2,
}


@dataclass
class PipelineSummary:
    """Everything a user needs to know about one run."""

    run_id: str
    failure_mode: str
    status: RunStatus = RunStatus.SUCCESS
    results: list[ProjectResult] = field(default_factory=list)
    model: UnifiedCoverageModel | None = None
    publish: PublishResult | None = None
    error: CoverplaneError | None = None
    reason: str | None = None
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @property
    def succeeded(self) -> list[ProjectResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ProjectResult]:
        return [r for r in self.results if not r.ok]

    @property
    def passthrough_count(self) -> int:
        return sum(r.passthrough_count for r in self.results)

    @property
    def conflicts(self) -> list[MergeConflict]:
        return list(self.model.conflicts) if self.model else []

    @property
    def totals(self) -> CoverageSummary | None:
        return self.model.summary if self.model else None

    @property
    def published(self) -> bool:
        return self.publish is not None and self.publish.kind != "none"

    def to_dict(self) -> dict[str, Any]:
        totals = self.totals
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "failure_mode": self.failure_mode,
            "dry_run": self.dry_run,
            "reason": self.reason,
            "projects": [
                {
                    "project": r.project,
                    "ok": r.ok,
                    "duration_sec": round(r.duration_sec, 2),
                    "files": len(r.record.files) if r.record else 0,
                    "failure": r.failure.to_dict() if r.failure else None,
                }
                for r in self.results
            ],
            "passthrough_symbols": self.passthrough_count,
            "conflicts": [
                {"file": c.file, "line": c.line, "detail": c.detail} for c in self.conflicts
            ],
            "totals": (
                {
                    "files": totals.files,
                    "lines_found": totals.lines_found,
                    "lines_hit": totals.lines_hit,
                    "functions_found": totals.functions_found,
                    "functions_hit": totals.functions_hit,
                    "branches_found": totals.branches_found,
                    "branches_hit": totals.branches_hit,
                }
                if totals
                else None
            ),
            "publish": (
                {
                    "kind": self.publish.kind,
                    "target": self.publish.target,
                    "version": self.publish.version,
                    "pushed": self.publish.pushed,
                }
                if self.publish
                else None
            ),
            "error": self.error.to_dict() if self.error else None,
        }
