"""Singleton sync-state record written by the indexer after each sync."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import text
from sqlmodel import Session

from recon.core.errors import StoreError, db_step
from recon.store.models import format_timestamp

_RFC3339 = re.compile(
    r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})"
)


@dataclass(frozen=True, slots=True)
class SyncState:
    """Last successful index run."""

    last_sync_at: datetime
    last_sync_commit: str
    last_sync_dirty: bool
    indexed_file_count: int
    index_fingerprint: str

    @property
    def last_sync_at_text(self) -> str:
        return format_timestamp(self.last_sync_at)


def parse_timestamp(value: str) -> datetime:
    """Parse RFC3339 text into an aware UTC datetime.

    Raises:
        StoreError: The value is not RFC3339. Never defaulted.
    """
    candidate = value.strip()
    if not _RFC3339.fullmatch(candidate):
        raise StoreError.corrupt_timestamp(value, "not an RFC3339 timestamp with offset")
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as e:
        raise StoreError.corrupt_timestamp(value, str(e)) from e
    return parsed.astimezone(UTC)


def load_sync_state(session: Session) -> SyncState | None:
    """Load the sync-state row; None means the repository was never synced."""
    with db_step("load sync state"):
        row = session.execute(
            text(
                "SELECT last_sync_at, last_sync_commit, last_sync_dirty, "
                "indexed_file_count, index_fingerprint FROM sync_state WHERE id = 1"
            )
        ).first()
    if row is None:
        return None
    return SyncState(
        last_sync_at=parse_timestamp(row[0]),
        last_sync_commit=row[1] or "",
        last_sync_dirty=bool(row[2]),
        indexed_file_count=int(row[3] or 0),
        index_fingerprint=row[4] or "",
    )


def upsert_sync_state(session: Session, state: SyncState) -> None:
    """Insert or replace the singleton row. The caller commits."""
    with db_step("upsert sync state"):
        session.execute(
            text(
                """
                INSERT INTO sync_state (
                    id, last_sync_at, last_sync_commit, last_sync_dirty,
                    indexed_file_count, index_fingerprint
                ) VALUES (1, :at, :commit, :dirty, :count, :fingerprint)
                ON CONFLICT(id) DO UPDATE SET
                    last_sync_at = excluded.last_sync_at,
                    last_sync_commit = excluded.last_sync_commit,
                    last_sync_dirty = excluded.last_sync_dirty,
                    indexed_file_count = excluded.indexed_file_count,
                    index_fingerprint = excluded.index_fingerprint
                """
            ),
            {
                "at": state.last_sync_at_text,
                "commit": state.last_sync_commit,
                "dirty": int(state.last_sync_dirty),
                "count": state.indexed_file_count,
                "fingerprint": state.index_fingerprint,
            },
        )
