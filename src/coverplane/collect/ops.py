"""Project coverage collection.

Each project is collected in isolation: its toolchain runs as a subprocess in
the project root, the raw lcov it writes is parsed and normalized, and the
normalized artifact is moved into ``<root>/<output_name>``. Any failure is
captured in that project's ProjectResult and never aborts the others.

collect_all() is the barrier: it returns only once every project finished,
failed or timed out. Cancelling it cancels every in-flight collection, and
a cancelled collection kills its process group.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import posixpath
import signal
import time
from collections.abc import Sequence
from pathlib import Path

from coverplane.collect.models import FailureReason, ProjectResult, ProjectSpec
from coverplane.collect.toolchains import get_toolchain
from coverplane.config.models import CollectConfig, CoverplaneConfig
from coverplane.core.errors import ConfigError
from coverplane.core.logging import get_logger
from coverplane.coverage.models import CoverageParseError
from coverplane.coverage.parsers import parse_bytes
from coverplane.coverage.symbols import SymbolNormalizer
from coverplane.coverage.writer import write_lcov_file
from coverplane.files.ops import scoped_temp_path, validate_path_in_workspace

log = get_logger("collect.ops")

# Lines of stderr kept in a toolchain failure detail
_STDERR_TAIL = 5


def project_specs(config: CoverplaneConfig, workspace_root: Path) -> list[ProjectSpec]:
    """Resolve configured projects into ProjectSpecs.

    Raises:
        ConfigError: If a path escapes the workspace, a toolchain is unknown,
            a required toolchain field is missing, or two projects share a name.
    """
    specs: list[ProjectSpec] = []
    seen: set[str] = set()
    for project in config.projects:
        root = validate_path_in_workspace(workspace_root, project.path)
        name = project.name or posixpath.normpath(project.path.replace("\\", "/"))
        toolchain_id = project.toolchain or config.collect.toolchain
        get_toolchain(toolchain_id)
        if toolchain_id == "command" and not project.command:
            raise ConfigError.missing_required(f"projects[{name}].command")
        if toolchain_id == "artifact" and not project.artifact:
            raise ConfigError.missing_required(f"projects[{name}].artifact")
        if name in seen:
            raise ConfigError.invalid_value("projects", name, "duplicate project name")
        seen.add(name)
        specs.append(
            ProjectSpec(
                name=name,
                root=root,
                toolchain=toolchain_id,
                artifact=project.artifact,
                command=tuple(project.command) if project.command else None,
            )
        )
    return specs


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill the process group started for ``proc`` and reap it."""
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            os.killpg(proc.pid, signal.SIGKILL)
    await proc.wait()


class ProjectCollector:
    """Collects one normalized CoverageRecord per project."""

    def __init__(
        self,
        workspace_root: Path,
        *,
        target: str,
        timeout_sec: float,
        output_name: str = "lcov.info",
        normalize_symbols: bool = True,
    ) -> None:
        self._workspace_root = workspace_root
        self._target = target
        self._timeout_sec = timeout_sec
        self._output_name = output_name
        self._normalize_symbols = normalize_symbols

    @classmethod
    def from_config(cls, workspace_root: Path, config: CollectConfig) -> ProjectCollector:
        return cls(
            workspace_root,
            target=config.target,
            timeout_sec=config.timeout_sec,
            output_name=config.output_name,
            normalize_symbols=config.normalize_symbols,
        )

    async def collect(self, spec: ProjectSpec) -> ProjectResult:
        """Collect coverage for one project.

        Never raises for project-level failures; those are reported in the
        returned ProjectResult. Cancellation propagates.
        """
        start = time.monotonic()
        log.info("collect_started", project=spec.name, toolchain=spec.toolchain)
        result = await self._collect(spec, start)
        if result.failure is not None:
            log.warning(
                "collect_failed",
                project=spec.name,
                reason=result.failure.reason.value,
                detail=result.failure.detail,
                duration_sec=round(result.duration_sec, 2),
            )
        else:
            log.info(
                "collect_completed",
                project=spec.name,
                files=len(result.record.files) if result.record else 0,
                passthrough=result.passthrough_count,
                duration_sec=round(result.duration_sec, 2),
            )
        return result

    async def _collect(self, spec: ProjectSpec, start: float) -> ProjectResult:
        def failed(reason: FailureReason, detail: str) -> ProjectResult:
            return ProjectResult.failed(
                spec.name, reason, detail, duration_sec=time.monotonic() - start
            )

        if not spec.root.is_dir():
            return failed(FailureReason.IO_ERROR, f"Project root not found: {spec.root}")

        try:
            toolchain = get_toolchain(spec.toolchain)
        except ConfigError as e:
            return failed(FailureReason.TOOLCHAIN_ERROR, e.message)

        try:
            with scoped_temp_path(spec.root, prefix=".coverplane-", suffix=".info") as raw:
                if toolchain.runs_process:
                    try:
                        cmd = toolchain.build_command(spec, raw, self._target)
                    except ConfigError as e:
                        return failed(FailureReason.TOOLCHAIN_ERROR, e.message)
                    failure = await self._run(spec, cmd)
                    if failure is not None:
                        reason, detail = failure
                        return failed(reason, detail)
                try:
                    source = toolchain.artifact_source(spec, raw)
                except ConfigError as e:
                    return failed(FailureReason.TOOLCHAIN_ERROR, e.message)
                data = source.read_bytes()
        except OSError as e:
            return failed(FailureReason.IO_ERROR, f"{type(e).__name__}: {e}")

        try:
            record = parse_bytes(
                data,
                project=spec.name,
                artifact=str(source),
                base_path=self._workspace_root,
                relative_root=spec.root if toolchain.project_relative_paths else None,
            )
        except CoverageParseError as e:
            return failed(FailureReason.PARSE_ERROR, str(e))

        passthrough = 0
        if self._normalize_symbols:
            normalizer = SymbolNormalizer()
            record = normalizer.normalize_record(record)
            passthrough = normalizer.passthrough_count

        output = spec.root / self._output_name
        try:
            write_lcov_file(record, output)
        except OSError as e:
            return failed(FailureReason.IO_ERROR, f"Cannot write {output}: {e}")

        return ProjectResult(
            project=spec.name,
            record=record,
            duration_sec=time.monotonic() - start,
            passthrough_count=passthrough,
            artifact_path=output,
        )

    async def _run(self, spec: ProjectSpec, cmd: list[str]) -> tuple[FailureReason, str] | None:
        """Run the toolchain command; return a failure or None on success."""
        log.debug("collect_command", project=spec.name, command=cmd, cwd=str(spec.root))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=spec.root,
                start_new_session=True,
            )
        except FileNotFoundError:
            return (FailureReason.TOOLCHAIN_ERROR, f"Executable not found: {cmd[0]}")
        except OSError as e:
            return (FailureReason.IO_ERROR, f"OS error executing command: {e}")

        try:
            _, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=self._timeout_sec)
        except TimeoutError:
            await _terminate(proc)
            return (
                FailureReason.TIMEOUT,
                f"Command timed out after {self._timeout_sec:g} seconds",
            )
        except asyncio.CancelledError:
            await _terminate(proc)
            raise

        if proc.returncode != 0:
            tail = stderr_bytes.decode(errors="replace").strip().splitlines()[-_STDERR_TAIL:]
            detail = f"Command exited with code {proc.returncode}"
            if tail:
                detail += ": " + " | ".join(tail)
            return (FailureReason.TOOLCHAIN_ERROR, detail)
        return None

    async def collect_all(
        self,
        specs: Sequence[ProjectSpec],
        *,
        max_workers: int,
    ) -> list[ProjectResult]:
        """Collect every project concurrently, bounded by ``max_workers``.

        Returns results in ``specs`` order once all collections have finished.
        """
        sem = asyncio.Semaphore(max_workers)

        async def run_project(spec: ProjectSpec) -> ProjectResult:
            async with sem:
                return await self.collect(spec)

        tasks = [asyncio.create_task(run_project(s), name=f"collect:{s.name}") for s in specs]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            # Reap every task before propagating so no process outlives the run
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return list(results)
