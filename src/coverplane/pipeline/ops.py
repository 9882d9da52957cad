"""Coverage pipeline orchestration.

lock → collect all projects (barrier) → apply failure mode → merge →
render → publish. Publishing happens only after every earlier stage has
succeeded (or succeeded under lenient mode), so a failed run never changes
the published target. A run cancelled mid-publish lets the swap finish
before it releases the run lock.
"""

from __future__ import annotations

import asyncio
import tempfile
import time
from pathlib import Path

from coverplane.collect.models import ProjectSpec
from coverplane.collect.ops import ProjectCollector, project_specs
from coverplane.config.models import CoverplaneConfig
from coverplane.core.errors import CoverplaneError, InternalError
from coverplane.core.logging import get_logger, get_run_id, set_run_id
from coverplane.coverage.merge import merge_records
from coverplane.coverage.models import CoverageRecord
from coverplane.pipeline.models import PipelineSummary, RunStatus
from coverplane.publish.lock import RunLock
from coverplane.publish.ops import Publisher, PublishResult, make_publisher
from coverplane.render.ops import ReportRenderer

log = get_logger("pipeline.ops")

STATE_DIR = ".coverplane"


def version_name(run_id: str) -> str:
    """Sortable publish version for a run."""
    return f"{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}-{run_id}"


class CoveragePipeline:
    """Runs one end-to-end coverage aggregation."""

    def __init__(
        self,
        workspace_root: Path,
        config: CoverplaneConfig,
        *,
        collector: ProjectCollector | None = None,
        renderer: ReportRenderer | None = None,
        publisher: Publisher | None = None,
        dry_run: bool = False,
        lock_wait_sec: float = 0.0,
    ) -> None:
        self.workspace_root = workspace_root
        self.config = config
        self.collector = collector or ProjectCollector.from_config(workspace_root, config.collect)
        self.renderer = renderer or ReportRenderer.from_config(config.render, workspace_root)
        self.publisher = publisher or make_publisher(config.publish, workspace_root)
        self.dry_run = dry_run
        self.lock_wait_sec = lock_wait_sec

    async def run(self, specs: list[ProjectSpec] | None = None) -> PipelineSummary:
        """Run the pipeline while holding the run lock.

        Raises:
            ConfigError: If the project list is invalid.
            LockHeldError: If another run holds the lock.
        """
        run_id = get_run_id() or set_run_id()
        if specs is None:
            specs = project_specs(self.config, self.workspace_root)

        lock = RunLock(self.workspace_root / self.config.lock_path, wait_sec=self.lock_wait_sec)
        await asyncio.to_thread(lock.acquire)
        try:
            return await self._run_locked(run_id, specs)
        finally:
            lock.release()

    async def _run_locked(self, run_id: str, specs: list[ProjectSpec]) -> PipelineSummary:
        failure_mode = self.config.collect.failure_mode
        summary = PipelineSummary(run_id=run_id, failure_mode=failure_mode, dry_run=self.dry_run)
        log.info(
            "pipeline_started",
            projects=len(specs),
            failure_mode=failure_mode,
            dry_run=self.dry_run,
        )

        summary.results = await self.collector.collect_all(
            specs, max_workers=self.config.collect.max_workers
        )
        failed = summary.failed
        records: list[CoverageRecord] = [r.record for r in summary.results if r.record]

        if failed and failure_mode == "strict":
            summary.status = RunStatus.COLLECTION_FAILED
            summary.reason = (
                f"{len(failed)} of {len(specs)} projects failed in strict mode; nothing published"
            )
            log.error("pipeline_aborted", failed=[r.project for r in failed], mode=failure_mode)
            return summary
        if not records:
            summary.status = RunStatus.COLLECTION_FAILED
            summary.reason = "no project produced coverage; nothing published"
            log.error("pipeline_aborted", failed=[r.project for r in failed], mode=failure_mode)
            return summary
        if failed:
            log.warning("pipeline_partial", failed=[r.project for r in failed])

        summary.model = merge_records(records)

        state_dir = self.workspace_root / STATE_DIR
        state_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="render-", dir=state_dir) as tmp:
            try:
                report_dir = await self.renderer.render(summary.model, Path(tmp) / "report")
                if not self.dry_run:
                    summary.publish = await self._publish(report_dir, version_name(run_id))
            except CoverplaneError as e:
                summary.status = RunStatus.PUBLISH_FAILED
                summary.error = e
                summary.reason = e.message
                log.error("pipeline_publish_failed", error=e.error_name, message=e.message)
                return summary

        summary.status = RunStatus.PARTIAL if failed else RunStatus.SUCCESS
        log.info(
            "pipeline_completed",
            status=summary.status.value,
            files=len(summary.model.files),
            conflicts=len(summary.model.conflicts),
            published=summary.published,
        )
        return summary

    async def _publish(self, report_dir: Path, version: str) -> PublishResult:
        """Publish in a worker thread that cancellation cannot abandon.

        The report directory and the run lock must outlive the swap, so a
        cancelled run waits for the thread before re-raising.

        Raises:
            PublishError: The publisher refused or failed cleanly.
            InternalError: The publisher raised anything else.
        """
        publish = asyncio.ensure_future(
            asyncio.to_thread(self.publisher.publish, report_dir, version)
        )
        try:
            return await asyncio.shield(publish)
        except asyncio.CancelledError:
            await asyncio.wait([publish])
            error = publish.exception()
            log.warning(
                "pipeline_cancelled_during_publish",
                version=version,
                published=error is None,
                error=repr(error) if error else None,
            )
            raise
        except CoverplaneError:
            raise
        except Exception as e:
            raise InternalError.unexpected(
                f"{type(e).__name__} from {self.publisher.kind} publisher: {e}",
                target=self.publisher.target,
            ) from e
