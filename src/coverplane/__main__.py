"""Entry point for ``python -m coverplane``."""

from coverplane.cli.main import cli

if __name__ == "__main__":
    cli()
