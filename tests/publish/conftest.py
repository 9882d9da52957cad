"""Test fixtures for publish module."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pygit2
import pytest

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


def _make_report(directory: Path, marker: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "index.html").write_text(f"<html>{marker}</html>\n")
    (directory / "lcov.info").write_text("SF:a.rs\nDA:1,1\nend_of_record\n")
    (directory / "src").mkdir(exist_ok=True)
    (directory / "src" / "a.rs.html").write_text(marker)
    return directory


@pytest.fixture
def make_report() -> Callable[[Path, str], Path]:
    """Factory writing a minimal rendered report tagged with a marker."""
    return _make_report


@pytest.fixture
def report(tmp_path: Path) -> Path:
    return _make_report(tmp_path / "report", "one")


@pytest.fixture
def temp_repo(tmp_path: Path) -> Generator[pygit2.Repository, None, None]:
    """Create a temporary git repository with initial commit on main."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()

    repo = pygit2.init_repository(str(repo_path), initial_head="main")
    repo.config["user.name"] = "Test User"
    repo.config["user.email"] = "test@example.com"

    (repo_path / "README.md").write_text("# Test Repo\n")
    repo.index.add("README.md")
    repo.index.write()
    tree = repo.index.write_tree()
    sig = pygit2.Signature("Test User", "test@example.com")
    repo.create_commit("refs/heads/main", sig, sig, "Initial commit", tree, [])
    repo.set_head("refs/heads/main")

    yield repo


@pytest.fixture
def bare_repo(tmp_path: Path) -> Generator[pygit2.Repository, None, None]:
    """Create a bare repository for remote testing."""
    yield pygit2.init_repository(str(tmp_path / "bare.git"), bare=True)


@pytest.fixture
def repo_with_remote(
    temp_repo: pygit2.Repository,
    bare_repo: pygit2.Repository,
) -> pygit2.Repository:
    """Repository with a configured 'origin' remote."""
    temp_repo.remotes.create("origin", str(Path(bare_repo.path).resolve()))
    return temp_repo
