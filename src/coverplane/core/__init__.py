"""Core module exports."""

from coverplane.core.errors import (
    ConfigError,
    CoverplaneError,
    ErrorCode,
    InternalError,
)
from coverplane.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from coverplane.core.progress import pluralize, spinner, status

__all__ = [
    # Errors
    "CoverplaneError",
    "ConfigError",
    "ErrorCode",
    "InternalError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "pluralize",
    "spinner",
    "status",
]
