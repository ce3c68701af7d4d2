"""Freshness oracle: is the stored index stale relative to the working tree?

Checks run in a fixed order and the first verdict wins:

    1. no sync_state row                       never_synced
    2. head moved (both revisions known)       git_head_changed_since_last_sync
    3. dirty flag flipped                      git_dirty_state_changed_since_last_sync
    4. fingerprint differs                     worktree_fingerprint_changed_since_last_sync
    5. otherwise                               fresh

The fingerprint is computed lazily and only when checks 1-3 pass. If it
cannot be computed the oracle records a warning and treats it as matching.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog
from pydantic import BaseModel

from recon.git.models import GitState
from recon.index.probes import RepoProbes
from recon.store.sync_state import SyncState

logger = structlog.get_logger()


class StaleReason(str, Enum):
    FRESH = ""
    NEVER_SYNCED = "never_synced"
    HEAD_CHANGED = "git_head_changed_since_last_sync"
    DIRTY_CHANGED = "git_dirty_state_changed_since_last_sync"
    FINGERPRINT_CHANGED = "worktree_fingerprint_changed_since_last_sync"


class Freshness(BaseModel):
    """Freshness section of the orient payload."""

    is_stale: bool
    reason: str = ""
    last_sync_at: str | None = None
    last_sync_commit: str | None = None
    current_commit: str | None = None
    stale_summary: str | None = None


@dataclass(frozen=True, slots=True)
class Verdict:
    reason: StaleReason
    stale_summary: str | None = None

    @property
    def is_stale(self) -> bool:
        return self.reason is not StaleReason.FRESH


@dataclass
class _Context:
    """Inputs shared by the checks. Holds the warnings they produce."""

    state: SyncState | None
    live: GitState
    root: Path
    probes: RepoProbes
    language: str | None
    warnings: list[str] = field(default_factory=list)


Check = Callable[[_Context], Verdict | None]


def _never_synced(ctx: _Context) -> Verdict | None:
    if ctx.state is None:
        return Verdict(StaleReason.NEVER_SYNCED)
    return None


def _head_changed(ctx: _Context) -> Verdict | None:
    if ctx.state is None:
        return None
    synced, current = ctx.state.last_sync_commit, ctx.live.head
    if not synced or not current or synced == current:
        return None
    stats = ctx.probes.change_stats(ctx.root, synced, current)
    return Verdict(StaleReason.HEAD_CHANGED, stats.summary() if stats else None)


def _dirty_changed(ctx: _Context) -> Verdict | None:
    if ctx.state is None:
        return None
    if ctx.state.last_sync_dirty != ctx.live.dirty:
        return Verdict(StaleReason.DIRTY_CHANGED)
    return None


def _fingerprint_changed(ctx: _Context) -> Verdict | None:
    if ctx.state is None:
        return None
    try:
        current = ctx.probes.fingerprint(ctx.root, ctx.language)
    except OSError as e:
        ctx.warnings.append(f"fingerprint check failed: {e}")
        logger.warning("fingerprint_check_failed", root=str(ctx.root), error=str(e))
        return None
    if current != ctx.state.index_fingerprint:
        return Verdict(StaleReason.FINGERPRINT_CHANGED)
    return None


CHECKS: tuple[Check, ...] = (
    _never_synced,
    _head_changed,
    _dirty_changed,
    _fingerprint_changed,
)


@dataclass(frozen=True, slots=True)
class FreshnessReport:
    freshness: Freshness
    warnings: list[str]


class FreshnessOracle:
    """Compares live repository signals with the persisted sync state."""

    def __init__(
        self,
        probes: RepoProbes | None = None,
        checks: tuple[Check, ...] = CHECKS,
    ) -> None:
        self._probes = probes or RepoProbes()
        self._checks = checks

    def evaluate(
        self,
        state: SyncState | None,
        root: Path,
        language: str | None = None,
    ) -> FreshnessReport:
        live = self._probes.git_state(root)
        ctx = _Context(state=state, live=live, root=root, probes=self._probes, language=language)

        verdict = Verdict(StaleReason.FRESH)
        for check in self._checks:
            result = check(ctx)
            if result is not None:
                verdict = result
                break

        freshness = Freshness(
            is_stale=verdict.is_stale,
            reason=verdict.reason.value,
            last_sync_at=state.last_sync_at_text if state else None,
            last_sync_commit=(state.last_sync_commit or None) if state else None,
            current_commit=live.head or None,
            stale_summary=verdict.stale_summary,
        )
        logger.debug("freshness_evaluated", reason=verdict.reason.value, stale=verdict.is_stale)
        return FreshnessReport(freshness=freshness, warnings=ctx.warnings)
