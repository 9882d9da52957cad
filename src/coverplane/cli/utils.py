"""CLI utilities."""

from pathlib import Path

import click

from coverplane.config.loader import WORKSPACE_CONFIG_NAMES, load_config
from coverplane.config.models import CoverplaneConfig
from coverplane.core.errors import ConfigError


def find_workspace_root(start_path: Path | None = None) -> Path:
    """Find the workspace root from the given path.

    Walks up the directory tree looking for a coverplane config file or a
    .git directory. Falls back to start_path itself when neither is found.

    Args:
        start_path: Starting directory to search from (default: cwd)

    Returns:
        Path to the workspace root
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    current = start
    while True:
        if any((current / name).is_file() for name in WORKSPACE_CONFIG_NAMES):
            return current
        if (current / ".git").exists():
            return current
        if current == current.parent:
            return start
        current = current.parent


def load_cli_config(workspace_root: Path, config_path: Path | None) -> CoverplaneConfig:
    """Load config, turning ConfigError into a CLI error."""
    try:
        return load_config(workspace_root, config_path=config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
