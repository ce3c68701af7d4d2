"""Tests for RepoSignals."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pygit2
import pytest

from recon.git import NotARepositoryError, RepoSignals

CommitFn = Callable[..., str]


class TestInit:
    def test_not_a_repo(self, tmp_path: Path) -> None:
        with pytest.raises(NotARepositoryError):
            RepoSignals(tmp_path)

    def test_discovers_from_subdirectory(self, temp_repo: pygit2.Repository) -> None:
        sub = Path(temp_repo.workdir) / "svc"
        sub.mkdir()
        assert isinstance(RepoSignals(sub).repo, pygit2.Repository)


class TestState:
    def test_clean_repo(self, temp_repo: pygit2.Repository) -> None:
        state = RepoSignals(temp_repo.workdir).state()
        assert state.head == str(temp_repo.head.target)
        assert state.dirty is False

    def test_untracked_file_is_dirty(self, temp_repo: pygit2.Repository) -> None:
        (Path(temp_repo.workdir) / "scratch.go").write_text("package x\n")
        assert RepoSignals(temp_repo.workdir).state().dirty is True

    def test_own_data_dir_is_ignored(self, temp_repo: pygit2.Repository) -> None:
        data = Path(temp_repo.workdir) / ".recon"
        data.mkdir()
        (data / "recon.db").write_bytes(b"sqlite")
        assert RepoSignals(temp_repo.workdir).state().dirty is False

    def test_unborn_head_is_empty(self, tmp_path: Path) -> None:
        pygit2.init_repository(str(tmp_path / "empty"))
        assert RepoSignals(tmp_path / "empty").state().head == ""


class TestChangeStats:
    def test_counts_commits_and_files(
        self, temp_repo: pygit2.Repository, commit: CommitFn
    ) -> None:
        base = str(temp_repo.head.target)
        commit({"a.go": "package a\n"})
        head = commit({"a.go": "package a\n// v2\n", "b.go": "package b\n"})

        stats = RepoSignals(temp_repo.workdir).change_stats(base, head)

        assert stats is not None
        assert stats.commits == 2
        assert stats.files_changed == 2
        assert stats.summary() == "2 commits, 2 files changed"

    def test_unknown_revision_is_none(self, temp_repo: pygit2.Repository) -> None:
        head = str(temp_repo.head.target)
        assert RepoSignals(temp_repo.workdir).change_stats("0" * 40, head) is None


class TestRecentFiles:
    def test_newest_first_and_deduplicated(
        self, temp_repo: pygit2.Repository, commit: CommitFn
    ) -> None:
        now = int(time.time())
        commit({"a.go": "1"}, when=now - 300)
        commit({"b.go": "1"}, when=now - 200)
        commit({"a.go": "2"}, when=now - 100)

        files = RepoSignals(temp_repo.workdir).recent_files(limit=5, scan=20)

        assert [f.file for f in files] == ["a.go", "b.go", "README.md"]
        assert files[0].last_modified.startswith(
            datetime.fromtimestamp(now - 100, UTC).strftime("%Y-%m-%dT%H:%M")
        )

    def test_limit_caps_result(self, temp_repo: pygit2.Repository, commit: CommitFn) -> None:
        now = int(time.time())
        for i in range(7):
            commit({f"f{i}.go": "x"}, when=now - 100 + i)

        files = RepoSignals(temp_repo.workdir).recent_files(limit=5, scan=20)

        assert [f.file for f in files] == ["f6.go", "f5.go", "f4.go", "f3.go", "f2.go"]

    def test_paths_relative_to_module_root(
        self, temp_repo: pygit2.Repository, commit: CommitFn
    ) -> None:
        commit({"svc/main.go": "package main\n", "other/x.go": "package x\n"})

        files = RepoSignals(Path(temp_repo.workdir) / "svc").recent_files(limit=5, scan=20)

        assert [f.file for f in files] == ["main.go"]


class TestTouchCounts:
    def test_counts_commits_inside_window(
        self, temp_repo: pygit2.Repository, commit: CommitFn
    ) -> None:
        now = int(time.time())
        commit({"pkg/a.go": "1"}, when=now - 120)
        commit({"pkg/a.go": "2", "pkg/b.go": "1"}, when=now - 60)
        since = datetime.now(UTC) - timedelta(days=1)

        counts = RepoSignals(temp_repo.workdir).touch_counts(since)

        assert counts["pkg/a.go"] == 2
        assert counts["pkg/b.go"] == 1

    def test_old_commits_are_excluded(
        self, temp_repo: pygit2.Repository, commit: CommitFn
    ) -> None:
        old = int((datetime.now(UTC) - timedelta(days=90)).timestamp())
        commit({"legacy/a.go": "1"}, when=old)
        commit({"fresh/b.go": "1"})
        since = datetime.now(UTC) - timedelta(days=30)

        counts = RepoSignals(temp_repo.workdir).touch_counts(since)

        assert "legacy/a.go" not in counts
        assert counts["fresh/b.go"] == 1
