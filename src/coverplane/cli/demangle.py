"""cvp demangle command - rewrite mangled symbols in a text stream."""

from typing import TextIO

import click

from coverplane.coverage.symbols import canonical_symbol


@click.command()
@click.option(
    "-i",
    "--input",
    "input_file",
    type=click.File("r", encoding="utf-8"),
    default="-",
    help="Input file (default: stdin).",
)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.File("w", encoding="utf-8", atomic=True),
    default="-",
    help="Output file (default: stdout).",
)
def demangle_command(input_file: TextIO, output_file: TextIO) -> None:
    """Replace mangled Rust symbols with their canonical names.

    Works on any text, line by line; text without mangled symbols passes
    through unchanged.
    """
    for line in input_file:
        output_file.write(canonical_symbol(line))
