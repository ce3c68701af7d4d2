"""Collaborator bundle consumed by the freshness oracle, orient and checks.

RepoProbes is a set of plain function fields. Services take one in their
constructor; tests substitute individual fields with ``dataclasses.replace``
to simulate failing or fixed collaborators.

The default git probes degrade to empty answers outside a repository: no
head, clean, no recent files, no touches.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from recon.git.errors import NotARepositoryError
from recon.git.models import ChangeStats, GitState, RecentFile
from recon.git.ops import RepoSignals
from recon.index.files import current_fingerprint
from recon.index.module import ModuleDescriptor, resolve_module

if TYPE_CHECKING:
    from recon.config.models import ReconConfig

ModuleDescriptorFn = Callable[[Path], ModuleDescriptor]
GitStateFn = Callable[[Path], GitState]
ChangeStatsFn = Callable[[Path, str, str], ChangeStats | None]
FingerprintFn = Callable[[Path, str | None], str]
RecentFilesFn = Callable[[Path, int, int], list[RecentFile]]
TouchCountsFn = Callable[[Path, datetime], dict[str, int]]


def git_state(root: Path) -> GitState:
    try:
        return RepoSignals(root).state()
    except NotARepositoryError:
        return GitState()


def change_stats(root: Path, from_rev: str, to_rev: str) -> ChangeStats | None:
    try:
        return RepoSignals(root).change_stats(from_rev, to_rev)
    except NotARepositoryError:
        return None


def recent_files(root: Path, limit: int, scan: int) -> list[RecentFile]:
    try:
        return RepoSignals(root).recent_files(limit, scan)
    except NotARepositoryError:
        return []


def touch_counts(root: Path, since: datetime) -> dict[str, int]:
    try:
        return RepoSignals(root).touch_counts(since)
    except NotARepositoryError:
        return {}


def _fingerprint(
    root: Path,
    language: str | None,
    *,
    excluded_dirs: Iterable[str] = (),
    max_file_size_mb: int | None = None,
) -> str:
    return current_fingerprint(root, language, excluded_dirs, max_file_size_mb)


@dataclass(frozen=True, slots=True)
class RepoProbes:
    """Live repository signals, one function per question."""

    module_descriptor: ModuleDescriptorFn = resolve_module
    git_state: GitStateFn = git_state
    change_stats: ChangeStatsFn = change_stats
    fingerprint: FingerprintFn = _fingerprint
    recent_files: RecentFilesFn = recent_files
    touch_counts: TouchCountsFn = touch_counts

    @classmethod
    def from_config(cls, config: ReconConfig) -> RepoProbes:
        """Defaults with the walk limits from ``config.index`` applied."""
        return cls(
            fingerprint=partial(
                _fingerprint,
                excluded_dirs=tuple(config.index.excluded_dirs),
                max_file_size_mb=config.index.max_file_size_mb,
            )
        )
