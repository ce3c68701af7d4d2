"""Test fixtures for git signals."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import pygit2
import pytest

CommitFn = Callable[..., str]


def make_commit(
    repo: pygit2.Repository,
    files: dict[str, str],
    message: str,
    *,
    when: int | None = None,
) -> str:
    """Write ``files`` into the work tree, stage them and commit on HEAD."""
    workdir = Path(repo.workdir)
    for rel, content in files.items():
        target = workdir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        repo.index.add(rel)
    repo.index.write()
    tree = repo.index.write_tree()
    sig = pygit2.Signature("Test User", "test@example.com", when or int(time.time()), 0)
    parents = [] if repo.head_is_unborn else [repo.head.target]
    return str(repo.create_commit("HEAD", sig, sig, message, tree, parents))


@pytest.fixture
def temp_repo(tmp_path: Path) -> pygit2.Repository:
    """Create a temporary git repository with initial commit."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()

    repo = pygit2.init_repository(str(repo_path), initial_head="main")
    repo.config["user.name"] = "Test User"
    repo.config["user.email"] = "test@example.com"

    # Back-dated so later test commits sort as newer
    make_commit(
        repo, {"README.md": "# Test Repo\n"}, "Initial commit", when=int(time.time()) - 3600
    )
    return repo


@pytest.fixture
def commit(temp_repo: pygit2.Repository) -> CommitFn:
    """Commit helper bound to ``temp_repo``."""

    def _commit(files: dict[str, str], message: str = "change", **kwargs: int) -> str:
        return make_commit(temp_repo, files, message, **kwargs)

    return _commit
