"""File operations - workspace path validation and all-or-nothing writes.

Pure filesystem I/O. Every artifact the pipeline leaves behind is either
fully written or absent: content goes to a temporary file in the destination
directory and is moved into place with a single ``os.replace``.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from coverplane.core.errors import ConfigError


def validate_path_in_workspace(workspace_root: Path, user_path: str) -> Path:
    """Validate that user_path is within workspace_root, preventing traversal.

    Args:
        workspace_root: Workspace root directory
        user_path: Configured path (relative to the workspace)

    Returns:
        Resolved absolute path if valid

    Raises:
        ConfigError: If the path escapes workspace_root
    """
    resolved_root = workspace_root.resolve()
    full_path = (workspace_root / user_path).resolve()

    if not full_path.is_relative_to(resolved_root):
        raise ConfigError.invalid_value(
            "projects.path",
            user_path,
            f"path escapes workspace root {resolved_root}",
        )
    return full_path


@contextlib.contextmanager
def scoped_temp_path(directory: Path, *, prefix: str, suffix: str = "") -> Iterator[Path]:
    """Yield a fresh temporary file path in ``directory``; remove it on exit.

    The file is created empty so concurrent callers never share a name. If the
    caller renamed it away, the cleanup is a no-op.
    """
    directory.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers see the old or the new file, never a prefix."""
    with scoped_temp_path(path.parent, prefix=f".{path.name}.", suffix=".tmp") as tmp:
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
