"""Report publishers.

A publisher makes a rendered report directory visible at a durable target in
one atomic step. Either the target shows the complete new report, or it
still shows the previous one. A failed publish never removes the previous
report.

- DirectoryPublisher: target path is a symlink swapped with ``os.replace``
- GitBranchPublisher: report committed to a branch, ref moved, then pushed
- NullPublisher: nothing published (``publish.kind: none``, dry runs)
"""

from __future__ import annotations

import contextlib
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from pathlib import Path

import pygit2
from pygit2.enums import FileMode

from coverplane.config.models import PublishConfig
from coverplane.core.logging import get_logger
from coverplane.publish.credentials import HelperCredentials
from coverplane.publish.errors import PublishError

log = get_logger("publish.ops")


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Where and what was published."""

    kind: str
    target: str
    version: str | None = None  # Version directory name or commit id
    pushed: bool = False


class Publisher(ABC):
    """Abstract base for atomic report publication."""

    kind: str

    @property
    @abstractmethod
    def target(self) -> str:
        """Human-readable target for summaries and errors."""
        ...

    @abstractmethod
    def publish(self, report_dir: Path, version: str) -> PublishResult:
        """Publish ``report_dir`` as ``version``.

        Raises:
            PublishError: The target still shows the previous report.
        """
        ...


class NullPublisher(Publisher):
    """Publishes nothing."""

    kind = "none"

    @property
    def target(self) -> str:
        return "-"

    def publish(self, report_dir: Path, version: str) -> PublishResult:
        log.info("publish_skipped", report=str(report_dir))
        return PublishResult(kind=self.kind, target=self.target)


# =============================================================================
# Directory
# =============================================================================


class DirectoryPublisher(Publisher):
    """Publishes into versioned directories behind a symlink.

    Layout for target ``site/coverage``::

        site/coverage -> .coverage.versions/<version>
        site/.coverage.versions/<version>/...

    Readers following the symlink see one whole version at a time.
    """

    kind = "directory"

    def __init__(self, target: Path, *, keep_versions: int = 1) -> None:
        self._target = target
        self.keep_versions = keep_versions

    @property
    def target(self) -> str:
        return str(self._target)

    @property
    def versions_dir(self) -> Path:
        return self._target.parent / f".{self._target.name}.versions"

    def current_version(self) -> Path | None:
        """Version directory the target currently points at, if any."""
        if not self._target.is_symlink():
            return None
        return (self._target.parent / os.readlink(self._target)).resolve()

    def publish(self, report_dir: Path, version: str) -> PublishResult:
        version_dir = self.versions_dir / version
        staging = self.versions_dir / f".{version}.staging"

        if self._target.exists() and not self._target.is_dir():
            raise PublishError.failed(self.target, "target exists and is not a directory")
        if version_dir.exists():
            raise PublishError.failed(self.target, f"version {version} already published")

        try:
            self.versions_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(report_dir, staging, symlinks=True)
            os.rename(staging, version_dir)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise PublishError.failed(self.target, f"staging failed: {e}") from e

        previous = self.current_version()
        try:
            self._swap(version_dir, version)
        except OSError as e:
            shutil.rmtree(version_dir, ignore_errors=True)
            raise PublishError.failed(self.target, f"swap failed: {e}") from e

        log.info(
            "publish_directory_swapped",
            target=self.target,
            version=version,
            previous=previous.name if previous else None,
        )
        self._prune(keep=version_dir)
        return PublishResult(kind=self.kind, target=self.target, version=version)

    def _swap(self, version_dir: Path, version: str) -> None:
        link = self._target.parent / f".{self._target.name}.{version}.link"
        os.symlink(os.path.relpath(version_dir, self._target.parent), link)
        try:
            if self._target.is_dir() and not self._target.is_symlink():
                self._replace_real_directory(link, version)
            else:
                os.replace(link, self._target)
        finally:
            with contextlib.suppress(FileNotFoundError):
                link.unlink()

    def _replace_real_directory(self, link: Path, version: str) -> None:
        """First publish over a plain directory: move it into the versions dir."""
        migrated = self.versions_dir / f"{version}-migrated"
        os.rename(self._target, migrated)
        try:
            os.replace(link, self._target)
        except OSError:
            os.rename(migrated, self._target)
            raise
        log.info("publish_directory_migrated", target=self.target, moved_to=str(migrated))

    def _prune(self, *, keep: Path) -> None:
        """Delete versions beyond ``keep_versions``; never fails the publish."""
        others = sorted(
            (
                p
                for p in self.versions_dir.iterdir()
                if p.is_dir() and not p.name.startswith(".") and p != keep
            ),
            key=lambda p: p.name,
        )
        stale = others[: max(len(others) - self.keep_versions, 0)]
        for path in stale:
            try:
                shutil.rmtree(path)
            except OSError as e:
                log.warning("publish_prune_failed", path=str(path), error=str(e))
            else:
                log.debug("publish_version_pruned", path=str(path))


# =============================================================================
# Git branch
# =============================================================================


class GitBranchPublisher(Publisher):
    """Commits the report to a branch and optionally pushes it.

    With ``force`` the commit has no parent and the push replaces the remote
    branch, like a gh-pages deploy. The local ref is only moved if it still
    points at the tip observed before the commit was built, and is restored
    if the push fails.
    """

    kind = "git-branch"

    def __init__(
        self,
        repo_path: Path,
        *,
        branch: str = "gh-pages",
        remote: str | None = None,
        prefix: str = "coverage",
        force: bool = True,
        message: str = "Coverage",
        author_name: str = "coverage",
        author_email: str = "coverage@users.noreply.github.com",
        callbacks: pygit2.RemoteCallbacks | None = None,
    ) -> None:
        self.repo_path = repo_path
        self.branch = branch
        self.remote = remote
        self.prefix = prefix.strip("/")
        self.force = force
        self.message = message
        self.author_name = author_name
        self.author_email = author_email
        self.callbacks = callbacks

    @property
    def target(self) -> str:
        if self.remote:
            return f"{self.remote}/{self.branch}"
        return self.branch

    @property
    def ref_name(self) -> str:
        return f"refs/heads/{self.branch}"

    def publish(self, report_dir: Path, version: str) -> PublishResult:
        try:
            repo = pygit2.Repository(str(self.repo_path))
        except pygit2.GitError as e:
            raise PublishError.failed(self.target, f"not a git repository: {self.repo_path}") from e

        try:
            old_ref = repo.references.get(self.ref_name)
            old_tip = old_ref.target if old_ref is not None else None

            tree_oid = self._wrap_in_prefix(repo, write_tree(repo, report_dir))
            signature = pygit2.Signature(self.author_name, self.author_email)
            parents = [old_tip] if old_tip is not None and not self.force else []
            commit_oid = repo.create_commit(
                None, signature, signature, self.message, tree_oid, parents
            )
            self._move_ref(repo, old_tip, commit_oid)
        except pygit2.GitError as e:
            raise PublishError.failed(self.target, f"commit failed: {e}") from e

        log.info("publish_branch_committed", branch=self.branch, commit=str(commit_oid))

        pushed = False
        if self.remote:
            try:
                self._push(repo)
            except PublishError:
                self._restore_ref(repo, old_tip)
                raise
            pushed = True
            log.info("publish_branch_pushed", remote=self.remote, branch=self.branch)

        return PublishResult(
            kind=self.kind, target=self.target, version=str(commit_oid), pushed=pushed
        )

    def _wrap_in_prefix(self, repo: pygit2.Repository, tree_oid: pygit2.Oid) -> pygit2.Oid:
        if not self.prefix:
            return tree_oid
        for name in reversed(self.prefix.split("/")):
            builder = repo.TreeBuilder()
            builder.insert(name, tree_oid, FileMode.TREE)
            tree_oid = builder.write()
        return tree_oid

    def _move_ref(
        self,
        repo: pygit2.Repository,
        expected: pygit2.Oid | None,
        new_tip: pygit2.Oid,
    ) -> None:
        current = repo.references.get(self.ref_name)
        current_tip = current.target if current is not None else None
        if current_tip != expected:
            raise PublishError.failed(
                self.target,
                f"{self.ref_name} moved during publish",
                expected=str(expected),
                found=str(current_tip),
            )
        if current is None:
            repo.references.create(self.ref_name, new_tip)
        else:
            current.set_target(new_tip, f"coverplane: publish {self.message}")

    def _restore_ref(self, repo: pygit2.Repository, old_tip: pygit2.Oid | None) -> None:
        try:
            if old_tip is None:
                repo.references.delete(self.ref_name)
            else:
                repo.references.create(self.ref_name, old_tip, force=True)
        except pygit2.GitError as e:
            log.error("publish_ref_restore_failed", ref=self.ref_name, error=str(e))
            return
        log.warning("publish_ref_restored", ref=self.ref_name, tip=str(old_tip))

    def _push(self, repo: pygit2.Repository) -> None:
        assert self.remote is not None
        if self.remote not in [r.name for r in repo.remotes]:
            raise PublishError.failed(self.target, f"remote not found: {self.remote}")
        prefix = "+" if self.force else ""
        refspec = f"{prefix}{self.ref_name}:{self.ref_name}"
        push = partial(
            pygit2.Remote.push,
            specs=[refspec],
            callbacks=self.callbacks or HelperCredentials(),
        )
        try:
            push(repo.remotes[self.remote])
        except pygit2.GitError as e:
            raise PublishError.failed(self.target, f"push failed: {e}") from e


def write_tree(repo: pygit2.Repository, directory: Path) -> pygit2.Oid:
    """Write ``directory`` into the object database; return the tree id."""
    builder = repo.TreeBuilder()
    for entry in sorted(directory.iterdir()):
        if entry.is_symlink():
            blob = repo.create_blob(os.readlink(entry).encode())
            builder.insert(entry.name, blob, FileMode.LINK)
        elif entry.is_dir():
            subtree = write_tree(repo, entry)
            if len(repo[subtree]) == 0:
                continue
            builder.insert(entry.name, subtree, FileMode.TREE)
        else:
            blob = repo.create_blob(entry.read_bytes())
            mode = FileMode.BLOB_EXECUTABLE if os.access(entry, os.X_OK) else FileMode.BLOB
            builder.insert(entry.name, blob, mode)
    return builder.write()


def make_publisher(config: PublishConfig, workspace_root: Path) -> Publisher:
    """Build the publisher configured by ``publish.kind``."""
    if config.kind == "directory":
        target = Path(config.target).expanduser()
        if not target.is_absolute():
            target = workspace_root / target
        return DirectoryPublisher(target, keep_versions=config.keep_versions)
    if config.kind == "git-branch":
        return GitBranchPublisher(
            workspace_root,
            branch=config.branch,
            remote=config.remote,
            prefix=config.prefix,
            force=config.force,
            message=config.message,
            author_name=config.author_name,
            author_email=config.author_email,
        )
    return NullPublisher()
