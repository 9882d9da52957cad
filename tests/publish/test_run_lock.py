"""Tests for the run-level lock file."""

from __future__ import annotations

import fcntl
import os
import subprocess
import sys
import threading
from pathlib import Path

import pytest

from coverplane.publish import LockHeldError, RunLock


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / ".coverplane" / "run.lock"


def _spawned_pid() -> int:
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


class TestRunLock:
    def test_acquire_writes_pid_and_release_removes(self, lock_path: Path) -> None:
        with RunLock(lock_path) as lock:
            assert lock.held
            assert lock_path.read_text() == str(os.getpid())
        assert not lock.held
        assert not lock_path.exists()

    def test_live_holder_blocks(self, lock_path: Path) -> None:
        with RunLock(lock_path):
            with pytest.raises(LockHeldError) as exc_info:
                RunLock(lock_path).acquire()
        err = exc_info.value
        assert err.retryable
        assert err.details["pid"] == os.getpid()
        assert str(os.getpid()) in err.message

    def test_waits_for_deadline(self, lock_path: Path) -> None:
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text(str(os.getpid()))
        with pytest.raises(LockHeldError):
            RunLock(lock_path, wait_sec=0.2, poll_sec=0.05).acquire()

    def test_stale_lock_reclaimed(self, lock_path: Path) -> None:
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text(str(_spawned_pid()))
        with RunLock(lock_path):
            assert lock_path.read_text() == str(os.getpid())

    def test_release_leaves_foreign_lock(self, lock_path: Path) -> None:
        lock = RunLock(lock_path)
        lock.acquire()
        lock_path.write_text("1")
        lock.release()
        assert lock_path.read_text() == "1"

    def test_release_without_acquire_is_noop(self, lock_path: Path) -> None:
        RunLock(lock_path).release()
        assert not lock_path.exists()


class TestStaleReclaim:
    def test_concurrent_reclaimers_single_winner(self, lock_path: Path) -> None:
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text(str(_spawned_pid()))
        start = threading.Barrier(8)
        winners: list[RunLock] = []
        errors: list[LockHeldError] = []

        def contend() -> None:
            lock = RunLock(lock_path)
            start.wait()
            try:
                lock.acquire()
            except LockHeldError as e:
                errors.append(e)
            else:
                winners.append(lock)

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert len(winners) == 1
        assert len(errors) == 7
        assert lock_path.read_text() == str(os.getpid())
        winners[0].release()
        assert not lock_path.exists()

    def test_fresh_lock_not_removed_by_late_reclaimer(self, lock_path: Path) -> None:
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text(str(_spawned_pid()))
        guard = os.open(lock_path.with_name("run.lock.reclaim"), os.O_CREAT | os.O_RDWR)
        fcntl.flock(guard, fcntl.LOCK_EX)
        errors: list[LockHeldError] = []

        def late() -> None:
            try:
                RunLock(lock_path).acquire()
            except LockHeldError as e:
                errors.append(e)

        thread = threading.Thread(target=late)
        thread.start()
        try:
            # Saw the dead PID; now parked on the guard
            thread.join(0.3)
            assert thread.is_alive()
            # Another run reclaims and takes the lock meanwhile
            lock_path.unlink()
            lock_path.write_text(str(os.getpid()))
        finally:
            os.close(guard)
        thread.join(10)

        assert lock_path.read_text() == str(os.getpid())
        assert len(errors) == 1
        assert errors[0].details["pid"] == os.getpid()
