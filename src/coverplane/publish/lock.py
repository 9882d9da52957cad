"""Run-level lock.

Serializes pipeline runs that share a workspace. The lock is a file created
with O_CREAT|O_EXCL holding the owner's PID; a lock whose PID no longer
exists is stale and is reclaimed. Reclaiming happens under an flock on a
sibling guard file, so only one waiter can remove a given stale lock.
"""

from __future__ import annotations

import contextlib
import fcntl
import os
import time
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from coverplane.core.logging import get_logger
from coverplane.publish.errors import LockHeldError

log = get_logger("publish.lock")


def _read_pid(path: Path) -> int | None:
    try:
        return int(path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    return True


class RunLock:
    """Exclusive lock file for one pipeline run.

    Usage:
        with RunLock(workspace / ".coverplane" / "run.lock"):
            ...
    """

    def __init__(self, path: Path, *, wait_sec: float = 0.0, poll_sec: float = 0.5) -> None:
        self.path = path
        self._guard_path = path.with_name(f"{path.name}.reclaim")
        self._wait_sec = wait_sec
        self._poll_sec = poll_sec
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True

    def acquire(self) -> None:
        """Acquire the lock, polling up to ``wait_sec``.

        Raises:
            LockHeldError: If a live process holds the lock after waiting.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self._wait_sec
        while True:
            if self._try_create():
                self._held = True
                log.debug("run_lock_acquired", path=str(self.path), pid=os.getpid())
                return

            pid = _read_pid(self.path)
            if pid is not None and not _pid_alive(pid):
                if self._reclaim_stale():
                    continue
                pid = _read_pid(self.path)

            if time.monotonic() >= deadline:
                raise LockHeldError.held(str(self.path), pid)
            time.sleep(self._poll_sec)

    @contextlib.contextmanager
    def _reclaim_guard(self) -> Iterator[None]:
        # The kernel drops the flock when its holder exits
        fd = os.open(self._guard_path, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            os.close(fd)

    def _reclaim_stale(self) -> bool:
        """Remove the lock file if its owner is dead.

        Returns False when a live process holds the lock by the time the
        guard is taken; True when the caller should retry creating it.
        """
        with self._reclaim_guard():
            # Only guarded reclaimers remove a dead owner's file, so this
            # read stays current until the unlink below
            pid = _read_pid(self.path)
            if pid is not None and _pid_alive(pid):
                return False
            if pid is not None:
                log.warning("run_lock_stale", path=str(self.path), pid=pid)
                with contextlib.suppress(FileNotFoundError):
                    self.path.unlink()
            return True

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        # Only remove the file if it is still ours
        if _read_pid(self.path) == os.getpid():
            with contextlib.suppress(FileNotFoundError):
                self.path.unlink()
        log.debug("run_lock_released", path=str(self.path))

    def __enter__(self) -> RunLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
