"""cvp merge command - merge existing lcov files."""

import sys
from pathlib import Path

import click

from coverplane.core.progress import pluralize, status
from coverplane.coverage.merge import merge_records
from coverplane.coverage.models import CoverageParseError, CoverageRecord
from coverplane.coverage.parsers import parse_artifact
from coverplane.coverage.report import build_text_summary
from coverplane.coverage.symbols import SymbolNormalizer
from coverplane.coverage.writer import write_lcov, write_lcov_file


@click.command()
@click.argument(
    "artifacts",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write merged lcov here (default: stdout).",
)
@click.option(
    "--base-path",
    type=click.Path(file_okay=False, path_type=Path),
    help="Make absolute source paths relative to this directory.",
)
@click.option("--no-normalize", is_flag=True, help="Keep function names as written.")
def merge_command(
    artifacts: tuple[Path, ...],
    output: Path | None,
    base_path: Path | None,
    no_normalize: bool,
) -> None:
    """Merge lcov ARTIFACTS into one lcov file.

    Hit counts are summed; no collection or publishing happens.
    """
    normalizer = SymbolNormalizer()
    records: list[CoverageRecord] = []
    for artifact in artifacts:
        try:
            record = parse_artifact(artifact, project=str(artifact), base_path=base_path)
        except CoverageParseError as e:
            raise click.ClickException(str(e)) from e
        if not no_normalize:
            record = normalizer.normalize_record(record)
        records.append(record)

    model = merge_records(records)

    if output is None:
        sys.stdout.buffer.write(write_lcov(model))
        sys.stdout.buffer.flush()
    else:
        write_lcov_file(model, output)

    for conflict in model.conflicts:
        status(f"{conflict.file}:{conflict.line}: {conflict.detail}", style="warning")
    status(
        f"Merged {pluralize(len(records), 'artifact')}: {build_text_summary(model)}",
        style="success",
    )
