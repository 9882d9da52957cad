"""Per-project coverage collection."""

from coverplane.collect.models import (
    CollectionFailure,
    FailureReason,
    ProjectResult,
    ProjectSpec,
)
from coverplane.collect.ops import ProjectCollector, project_specs
from coverplane.collect.toolchains import TOOLCHAINS, Toolchain, get_toolchain

__all__ = [
    "CollectionFailure",
    "FailureReason",
    "ProjectCollector",
    "ProjectResult",
    "ProjectSpec",
    "TOOLCHAINS",
    "Toolchain",
    "get_toolchain",
    "project_specs",
]
