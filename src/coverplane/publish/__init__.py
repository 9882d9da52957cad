"""Atomic report publication and the run lock."""

from coverplane.publish.errors import LockHeldError, PublishError, RenderError
from coverplane.publish.lock import RunLock
from coverplane.publish.ops import (
    DirectoryPublisher,
    GitBranchPublisher,
    NullPublisher,
    Publisher,
    PublishResult,
    make_publisher,
    write_tree,
)

__all__ = [
    "DirectoryPublisher",
    "GitBranchPublisher",
    "LockHeldError",
    "NullPublisher",
    "PublishError",
    "PublishResult",
    "Publisher",
    "RenderError",
    "RunLock",
    "make_publisher",
    "write_tree",
]
