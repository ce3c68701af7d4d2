"""Git signal data types. Frozen dataclasses, no pygit2 objects escape."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pygit2

# Delta kinds that leave a file present in the new tree (git's --diff-filter=ACMR)
SURVIVING_DELTAS: frozenset[int] = frozenset(
    (
        pygit2.GIT_DELTA_ADDED,
        pygit2.GIT_DELTA_COPIED,
        pygit2.GIT_DELTA_MODIFIED,
        pygit2.GIT_DELTA_RENAMED,
    )
)


@dataclass(frozen=True, slots=True)
class GitState:
    """Working tree signals. ``head`` is empty for unborn or non-git trees."""

    head: str = ""
    dirty: bool = False


@dataclass(frozen=True, slots=True)
class ChangeStats:
    """Distance between two revisions."""

    commits: int
    files_changed: int

    def summary(self) -> str:
        return f"{self.commits} commits, {self.files_changed} files changed"


@dataclass(frozen=True, slots=True)
class RecentFile:
    """A tracked file and the author date of the newest commit touching it."""

    file: str
    last_modified: str

    @classmethod
    def from_pygit2(cls, path: str, commit: pygit2.Commit) -> RecentFile:
        return cls(file=path, last_modified=author_date(commit).isoformat())


def author_date(commit: pygit2.Commit) -> datetime:
    """Author time in the author's own UTC offset, like ``git log %aI``."""
    tz = timezone(timedelta(minutes=commit.author.offset))
    return datetime.fromtimestamp(commit.author.time, tz=tz)
