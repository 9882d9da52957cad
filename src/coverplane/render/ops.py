"""Report rendering boundary.

The HTML renderer is an external program. ReportRenderer writes the merged
model as ``lcov.info`` (its input) plus ``summary.json`` into the output
directory and, for the ``genhtml`` kind, runs the configured command there.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from pathlib import Path
from typing import Literal

from coverplane.config.models import RenderConfig
from coverplane.core.logging import get_logger
from coverplane.coverage.models import UnifiedCoverageModel
from coverplane.coverage.report import build_summary
from coverplane.coverage.writer import write_lcov_file
from coverplane.files.ops import atomic_write_bytes
from coverplane.publish.errors import RenderError

log = get_logger("render.ops")

LCOV_NAME = "lcov.info"
SUMMARY_NAME = "summary.json"


class ReportRenderer:
    """Turns a UnifiedCoverageModel into a publishable report directory."""

    def __init__(
        self,
        kind: Literal["genhtml", "none"] = "genhtml",
        command: list[str] | None = None,
        timeout_sec: float = 600.0,
        cwd: Path | None = None,
    ) -> None:
        self.kind = kind
        self.command = command or ["genhtml", "--output-directory", "{output}", "{input}"]
        self.timeout_sec = timeout_sec
        # lcov SF paths are workspace-relative; genhtml resolves them from here
        self.cwd = cwd

    @classmethod
    def from_config(
        cls, config: RenderConfig, workspace_root: Path | None = None
    ) -> ReportRenderer:
        return cls(
            kind=config.kind,
            command=list(config.command),
            timeout_sec=config.timeout_sec,
            cwd=workspace_root,
        )

    async def render(self, model: UnifiedCoverageModel, output_dir: Path) -> Path:
        """Render ``model`` into ``output_dir`` and return it.

        Raises:
            RenderError: If writing the inputs or the external renderer fails.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        lcov_path = output_dir / LCOV_NAME
        try:
            write_lcov_file(model, lcov_path)
            summary = json.dumps(build_summary(model), indent=2, sort_keys=True) + "\n"
            atomic_write_bytes(output_dir / SUMMARY_NAME, summary.encode("utf-8"))
        except OSError as e:
            raise RenderError.failed(f"cannot write report inputs: {e}") from e

        if self.kind == "genhtml":
            await self._run(lcov_path, output_dir)

        log.info("report_rendered", kind=self.kind, output=str(output_dir), files=len(model.files))
        return output_dir

    async def _run(self, lcov_path: Path, output_dir: Path) -> None:
        values = {"output": str(output_dir.resolve()), "input": str(lcov_path.resolve())}
        try:
            cmd = [arg.format(**values) for arg in self.command]
        except (KeyError, IndexError, ValueError) as e:
            raise RenderError.failed(f"bad placeholder in render.command: {e}") from e

        log.debug("render_command", command=cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=self.cwd,
            )
        except OSError as e:
            raise RenderError.failed(f"cannot execute {cmd[0]}: {e}", command=cmd) from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_sec)
        except (TimeoutError, asyncio.CancelledError) as e:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
            await proc.wait()
            if isinstance(e, asyncio.CancelledError):
                raise
            raise RenderError.failed(
                f"renderer timed out after {self.timeout_sec:g} seconds", command=cmd
            ) from e

        if proc.returncode != 0:
            tail = stderr.decode(errors="replace").strip().splitlines()[-5:]
            raise RenderError.failed(
                f"renderer exited with code {proc.returncode}",
                command=cmd,
                stderr=tail,
            )
