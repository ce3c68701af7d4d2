"""Repository signals read through pygit2.

RepoSignals answers the questions the freshness oracle and the orient
builder ask of version control: current head and dirty flag, distance
between two revisions, recently modified files, and per-file touch counts
over a time window. Paths are reported relative to the module root, which
may be a subdirectory of the repository work tree.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from pathlib import Path, PurePosixPath

import pygit2
import structlog

from recon.config.constants import DATA_DIR_NAME
from recon.git.errors import NotARepositoryError, RefNotFoundError
from recon.git.models import SURVIVING_DELTAS, ChangeStats, GitState, RecentFile

logger = structlog.get_logger()


class RepoSignals:
    """Read-only view over the repository containing ``module_root``."""

    def __init__(self, module_root: Path | str) -> None:
        self._root = Path(module_root).resolve()
        discovered = pygit2.discover_repository(str(self._root))
        if discovered is None:
            raise NotARepositoryError(str(self._root))
        try:
            self._repo = pygit2.Repository(discovered)
        except pygit2.GitError as e:
            raise NotARepositoryError(str(self._root)) from e
        workdir = Path(self._repo.workdir).resolve() if self._repo.workdir else self._root
        prefix = self._root.relative_to(workdir).as_posix() if self._root != workdir else ""
        self._prefix = "" if prefix == "." else prefix

    @property
    def repo(self) -> pygit2.Repository:
        return self._repo

    # =========================================================================
    # Working tree state
    # =========================================================================

    def state(self) -> GitState:
        """Head commit id and whether tracked or untracked changes exist."""
        head = ""
        if not self._repo.head_is_unborn:
            head = str(self._repo.head.peel(pygit2.Commit).id)
        dirty = any(
            flags != pygit2.GIT_STATUS_CURRENT and not self._is_own_data(path)
            for path, flags in self._repo.status().items()
        )
        return GitState(head=head, dirty=dirty)

    def change_stats(self, from_rev: str, to_rev: str) -> ChangeStats | None:
        """Commits reachable from ``to_rev`` but not ``from_rev``, and files changed.

        Returns None when either revision is unknown (rewritten history,
        shallow clone).
        """
        try:
            old = self._resolve_commit(from_rev)
            new = self._resolve_commit(to_rev)
        except RefNotFoundError as e:
            logger.debug("change_stats_unavailable", reason=str(e))
            return None

        walker = self._repo.walk(new.id, pygit2.GIT_SORT_TOPOLOGICAL)
        walker.hide(old.id)
        commits = sum(1 for _ in walker)
        diff = self._repo.diff(old, new)
        return ChangeStats(commits=commits, files_changed=len(diff))

    # =========================================================================
    # History
    # =========================================================================

    def recent_files(self, limit: int, scan: int) -> list[RecentFile]:
        """Newest-first distinct files added or modified in the last ``scan`` commits."""
        seen: set[str] = set()
        result: list[RecentFile] = []
        for commit in self._walk_head(scan):
            for path in self._surviving_paths(commit):
                if path in seen:
                    continue
                seen.add(path)
                result.append(RecentFile.from_pygit2(path, commit))
                if len(result) >= limit:
                    return result
        return result

    def touch_counts(self, since: datetime) -> dict[str, int]:
        """Number of commits since ``since`` that touched each file."""
        cutoff = since.timestamp()
        counts: dict[str, int] = {}
        for commit in self._walk_head(None):
            if commit.commit_time < cutoff:
                break
            for path in self._changed_paths(commit):
                counts[path] = counts.get(path, 0) + 1
        return counts

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve_commit(self, ref: str) -> pygit2.Commit:
        try:
            obj, _ = self._repo.resolve_refish(ref)
            commit = obj.peel(pygit2.Commit)
        except (pygit2.GitError, KeyError, ValueError) as e:
            raise RefNotFoundError(ref) from e
        if not isinstance(commit, pygit2.Commit):
            raise RefNotFoundError(ref)
        return commit

    def _walk_head(self, limit: int | None) -> Iterator[pygit2.Commit]:
        if self._repo.head_is_unborn:
            return
        start = self._repo.head.peel(pygit2.Commit).id
        for count, commit in enumerate(self._repo.walk(start, pygit2.GIT_SORT_TIME)):
            if limit is not None and count >= limit:
                return
            yield commit

    def _diff_to_parent(self, commit: pygit2.Commit) -> pygit2.Diff:
        if commit.parents:
            return self._repo.diff(commit.parents[0], commit)
        return commit.tree.diff_to_tree(swap=True)

    def _surviving_paths(self, commit: pygit2.Commit) -> Iterator[str]:
        for delta in self._diff_to_parent(commit).deltas:
            if delta.status in SURVIVING_DELTAS:
                path = self._to_module_path(delta.new_file.path)
                if path is not None:
                    yield path

    def _changed_paths(self, commit: pygit2.Commit) -> Iterator[str]:
        for delta in self._diff_to_parent(commit).deltas:
            path = self._to_module_path(delta.new_file.path or delta.old_file.path)
            if path is not None:
                yield path

    def _to_module_path(self, repo_path: str) -> str | None:
        if not self._prefix:
            return repo_path
        candidate = PurePosixPath(repo_path)
        try:
            return candidate.relative_to(self._prefix).as_posix()
        except ValueError:
            return None

    def _is_own_data(self, repo_path: str) -> bool:
        module_path = self._to_module_path(repo_path)
        if module_path is None:
            return False
        return module_path == DATA_DIR_NAME or module_path.startswith(f"{DATA_DIR_NAME}/")
