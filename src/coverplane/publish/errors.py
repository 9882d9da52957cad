"""Publish-stage error types."""

from typing import Any

from coverplane.core.errors import CoverplaneError, ErrorCode


class PublishError(CoverplaneError):
    """Publishing failed; the previously published report is untouched."""

    @classmethod
    def failed(cls, target: str, reason: str, **details: Any) -> "PublishError":
        return cls(
            code=ErrorCode.PUBLISH_FAILED,
            message=f"Publish to {target} failed: {reason}",
            details={"target": target, "reason": reason, **details},
        )


class LockHeldError(PublishError):
    """Another run holds the run lock."""

    @classmethod
    def held(cls, path: str, pid: int | None) -> "LockHeldError":
        owner = f"pid {pid}" if pid is not None else "unknown owner"
        return cls(
            code=ErrorCode.PUBLISH_LOCK_HELD,
            message=f"Another coverage run holds {path} ({owner})",
            retryable=True,
            details={"path": path, "pid": pid},
        )


class RenderError(CoverplaneError):
    """The external report renderer failed."""

    @classmethod
    def failed(cls, reason: str, **details: Any) -> "RenderError":
        return cls(
            code=ErrorCode.RENDER_FAILED,
            message=f"Report rendering failed: {reason}",
            details={"reason": reason, **details},
        )
