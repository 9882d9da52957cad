"""Config module exports."""

from coverplane.config.loader import load_config
from coverplane.config.models import (
    CollectConfig,
    CoverplaneConfig,
    LoggingConfig,
    LogOutputConfig,
    ProjectConfig,
    PublishConfig,
    RenderConfig,
)

__all__ = [
    "load_config",
    "CollectConfig",
    "CoverplaneConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "ProjectConfig",
    "PublishConfig",
    "RenderConfig",
]
