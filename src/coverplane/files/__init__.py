"""File operations module - atomic writes and workspace path checks."""

from coverplane.files.ops import (
    atomic_write_bytes,
    scoped_temp_path,
    validate_path_in_workspace,
)

__all__ = ["atomic_write_bytes", "scoped_temp_path", "validate_path_in_workspace"]
