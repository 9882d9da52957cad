"""cvp run command - collect, merge, render, and publish coverage."""

import asyncio
import json
from pathlib import Path

import click
from rich.table import Table

from coverplane.cli.utils import find_workspace_root, load_cli_config
from coverplane.config.models import CoverplaneConfig, ProjectConfig
from coverplane.core.errors import CoverplaneError
from coverplane.core.logging import (
    clear_run_id,
    configure_logging,
    get_log_file_path,
    set_run_id,
)
from coverplane.core.progress import get_console, pluralize, spinner, status
from coverplane.pipeline.models import PipelineSummary, RunStatus
from coverplane.pipeline.ops import CoveragePipeline


def _apply_overrides(
    config: CoverplaneConfig,
    *,
    projects: tuple[str, ...],
    toolchain: str | None,
    failure_mode: str | None,
) -> CoverplaneConfig:
    collect_updates: dict[str, str] = {}
    if toolchain:
        collect_updates["toolchain"] = toolchain
    if failure_mode:
        collect_updates["failure_mode"] = failure_mode
    updates: dict[str, object] = {}
    if collect_updates:
        updates["collect"] = config.collect.model_copy(update=collect_updates)
    if projects:
        updates["projects"] = [ProjectConfig(path=p) for p in projects]
    return config.model_copy(update=updates) if updates else config


def _make_results_table(summary: PipelineSummary) -> Table:
    """Per-project outcome table for the post-run summary."""
    table = Table(show_header=True, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("project", style="cyan")
    table.add_column("result")
    table.add_column("files", justify="right")
    table.add_column("time", justify="right", style="dim")
    table.add_column("detail", style="dim", overflow="fold")

    for r in summary.results:
        if r.record is not None:
            table.add_row(
                r.project,
                "[green]ok[/green]",
                str(len(r.record.files)),
                f"{r.duration_sec:.1f}s",
                f"{r.passthrough_count} unnormalized symbols" if r.passthrough_count else "",
            )
        elif r.failure is not None:
            table.add_row(
                r.project,
                f"[red]{r.failure.reason.value}[/red]",
                "-",
                f"{r.duration_sec:.1f}s",
                r.failure.detail,
            )
    return table


def _print_summary(summary: PipelineSummary) -> None:
    console = get_console()
    console.print()
    console.print(_make_results_table(summary))
    console.print()

    for conflict in summary.conflicts:
        status(f"{conflict.file}:{conflict.line}: {conflict.detail}", style="warning")

    totals = summary.totals
    if totals is not None and totals.lines_found:
        status(
            f"Merged {pluralize(totals.files, 'file')}: "
            f"{totals.line_rate * 100:.1f}% lines "
            f"({totals.lines_hit}/{totals.lines_found})",
            style="info",
        )

    if summary.status is RunStatus.SUCCESS:
        where = summary.publish.target if summary.published and summary.publish else None
        if where:
            status(f"Published to {where}", style="success")
        else:
            status("Coverage merged (not published)", style="success")
    elif summary.status is RunStatus.PARTIAL:
        failed = ", ".join(r.project for r in summary.failed)
        target = summary.publish.target if summary.published and summary.publish else "-"
        status(f"Published partial coverage to {target}; failed: {failed}", style="warning")
    else:
        status(summary.reason or summary.status.value, style="error")
        if log_path := get_log_file_path():
            status(f"See {log_path} for details", style="info", indent=2)


@click.command()
@click.argument(
    "path",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file to use instead of coverplane.yaml discovery.",
)
@click.option(
    "-p",
    "--project",
    "projects",
    multiple=True,
    help="Project directory relative to the workspace (repeatable). Overrides config.",
)
@click.option("--toolchain", help="Default toolchain id (e.g. cargo-llvm-cov).")
@click.option(
    "--failure-mode",
    type=click.Choice(["strict", "lenient"]),
    help="strict: any project failure fails the run. lenient: merge what succeeded.",
)
@click.option("--dry-run", is_flag=True, help="Collect, merge, and render without publishing.")
@click.option(
    "--wait",
    "wait_sec",
    type=float,
    default=0.0,
    show_default=True,
    help="Seconds to wait for a concurrent run to release the lock.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the run summary as JSON.")
@click.pass_context
def run_command(
    ctx: click.Context,
    path: Path,
    config_path: Path | None,
    projects: tuple[str, ...],
    toolchain: str | None,
    failure_mode: str | None,
    dry_run: bool,
    wait_sec: float,
    as_json: bool,
) -> None:
    """Collect coverage for every project, merge it, and publish the report.

    PATH is the workspace root (default: current directory).
    """
    workspace_root = find_workspace_root(path)
    config = load_cli_config(workspace_root, config_path)
    config = _apply_overrides(
        config, projects=projects, toolchain=toolchain, failure_mode=failure_mode
    )

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    if not verbose:
        configure_logging(config=config.logging)

    pipeline = CoveragePipeline(
        workspace_root, config, dry_run=dry_run, lock_wait_sec=wait_sec
    )

    set_run_id()
    try:
        with spinner(f"Collecting {pluralize(len(config.projects), 'project')}"):
            summary = asyncio.run(pipeline.run())
    except CoverplaneError as e:
        raise click.ClickException(str(e)) from e
    finally:
        clear_run_id()

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        _print_summary(summary)

    ctx.exit(summary.exit_code)
