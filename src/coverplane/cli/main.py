"""Coverplane CLI - cvp command."""

import click

from coverplane.cli.demangle import demangle_command
from coverplane.cli.merge import merge_command
from coverplane.cli.run import run_command
from coverplane.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="cvp")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Coverplane - merge coverage across projects and publish one report."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(run_command, name="run")
cli.add_command(merge_command, name="merge")
cli.add_command(demangle_command, name="demangle")


if __name__ == "__main__":
    cli()
