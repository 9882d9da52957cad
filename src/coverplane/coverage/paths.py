"""Canonical file path handling.

Records produced in different project directories refer to the same source
file through different spellings (absolute paths, ``./`` prefixes, Windows
separators). Every path is reduced to one workspace-relative POSIX form
before records are merged.

Relative paths are taken as workspace-relative whichever project reported
them, so two projects naming ``src/a.rs`` share one key. Toolchains that
report paths from the project root pass that root as ``relative_root``.
"""

import contextlib
import posixpath
from pathlib import Path, PurePosixPath


def _posix(path: Path | str) -> PurePosixPath:
    return PurePosixPath(str(path).replace("\\", "/"))


def canonical_path(
    raw: str,
    base_path: Path | None = None,
    relative_root: Path | None = None,
) -> str:
    """Return the canonical, workspace-relative form of ``raw``.

    Relative paths are first anchored at ``relative_root`` when given.
    Absolute paths under ``base_path`` are made relative to it; paths
    outside it are kept absolute.
    """
    path = _posix(raw.strip())
    if relative_root is not None and not path.is_absolute():
        path = _posix(relative_root) / path
    if base_path is not None and path.is_absolute():
        path = PurePosixPath(posixpath.normpath(str(path)))
        with contextlib.suppress(ValueError):
            path = path.relative_to(_posix(base_path))
    normalized = posixpath.normpath(str(path))
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized
