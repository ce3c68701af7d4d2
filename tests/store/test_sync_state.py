"""Tests for the sync-state record."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from recon.core.errors import ErrorCode, StoreError
from recon.store.database import Database
from recon.store.sync_state import (
    SyncState,
    load_sync_state,
    parse_timestamp,
    upsert_sync_state,
)


def _state(**overrides: object) -> SyncState:
    values: dict[str, object] = {
        "last_sync_at": datetime(2024, 5, 1, 12, 30, tzinfo=UTC),
        "last_sync_commit": "abc123",
        "last_sync_dirty": False,
        "indexed_file_count": 3,
        "index_fingerprint": "f" * 64,
    }
    values.update(overrides)
    return SyncState(**values)  # type: ignore[arg-type]


class TestParseTimestamp:
    def test_zulu_suffix(self) -> None:
        assert parse_timestamp("2024-05-01T12:30:00Z") == datetime(2024, 5, 1, 12, 30, tzinfo=UTC)

    def test_offset_is_normalized_to_utc(self) -> None:
        parsed = parse_timestamp("2024-05-01T14:30:00+02:00")
        assert parsed == datetime(2024, 5, 1, 12, 30, tzinfo=UTC)

    def test_fractional_seconds(self) -> None:
        parsed = parse_timestamp("2024-05-01T12:30:00.250Z")
        assert parsed == datetime(2024, 5, 1, 12, 30, 0, 250000, tzinfo=UTC)

    @pytest.mark.parametrize(
        "value",
        [
            "yesterday",
            "2024-05-01",
            "2024-05-01T12:30:00",
            "",
            "20240501T120000+00:00",
            "2024-05-01 12:30:00Z",
            "2024-05-01T12:30+00:00",
        ],
    )
    def test_rejects_non_rfc3339(self, value: str) -> None:
        with pytest.raises(StoreError) as exc_info:
            parse_timestamp(value)
        assert exc_info.value.code == ErrorCode.STORE_CORRUPT_TIMESTAMP


class TestLoadSyncState:
    def test_missing_row_is_none(self, db: Database) -> None:
        with db.session() as session:
            assert load_sync_state(session) is None

    def test_round_trip_through_upsert(self, db: Database) -> None:
        with db.session() as session:
            upsert_sync_state(session, _state())
            session.commit()
            upsert_sync_state(session, _state(last_sync_commit="def456", last_sync_dirty=True))
            session.commit()

        with db.session() as session:
            state = load_sync_state(session)

        assert state is not None
        assert state.last_sync_commit == "def456"
        assert state.last_sync_dirty is True
        assert state.last_sync_at_text == "2024-05-01T12:30:00Z"

    def test_corrupt_timestamp_is_an_error_not_never_synced(self, db: Database) -> None:
        db.execute_raw(
            "INSERT INTO sync_state (id, last_sync_at, index_fingerprint) "
            "VALUES (1, 'not-a-time', 'x')"
        )

        with db.session() as session, pytest.raises(StoreError) as exc_info:
            load_sync_state(session)

        assert exc_info.value.step == "parse sync timestamp"
