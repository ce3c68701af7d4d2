"""Tests for versioned schema migrations."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text

from recon.core.errors import StoreError
from recon.store.database import Database
from recon.store.migrations import MIGRATIONS, Migration, Migrator


def _tables(db: Database) -> set[str]:
    with db.engine.connect() as conn:
        rows = conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
        return {row[0] for row in rows}


def _columns(db: Database, table: str) -> list[str]:
    with db.engine.connect() as conn:
        return [row[1] for row in conn.execute(text(f"PRAGMA table_info({table})"))]


@pytest.fixture
def raw_db(tmp_path: Path) -> Database:
    database = Database(tmp_path / "raw.db")
    yield database
    database.dispose()


class TestMigrator:
    def test_fresh_database_reaches_latest_version(self, raw_db: Database) -> None:
        migrator = Migrator(raw_db.engine)

        applied = migrator.migrate()

        assert applied == [m.version for m in MIGRATIONS]
        assert migrator.current_version() == MIGRATIONS[-1].version
        assert {"decisions", "patterns", "edges", "search_index", "sync_state"} <= _tables(raw_db)
        assert "pattern_files" not in _tables(raw_db)

    def test_migrate_is_idempotent(self, raw_db: Database) -> None:
        migrator = Migrator(raw_db.engine)
        migrator.migrate()

        assert migrator.migrate() == []
        assert Migrator(raw_db.engine).pending() == []

    def test_target_version_stops_early(self, raw_db: Database) -> None:
        migrator = Migrator(raw_db.engine)

        assert migrator.migrate(target=2) == [1, 2]
        assert "patterns" not in _tables(raw_db)
        assert [m.version for m in migrator.pending()] == [3, 4]

    def test_rejects_unordered_history(self, raw_db: Database) -> None:
        with pytest.raises(ValueError, match="ascending"):
            Migrator(raw_db.engine, migrations=(MIGRATIONS[1], MIGRATIONS[0]))

    def test_failing_migration_rolls_back_and_is_not_recorded(self, raw_db: Database) -> None:
        broken = Migration(
            5,
            "broken",
            (
                "CREATE TABLE half_done (id INTEGER PRIMARY KEY)",
                "INSERT INTO table_that_does_not_exist VALUES (1)",
            ),
        )
        migrator = Migrator(raw_db.engine, migrations=(*MIGRATIONS, broken))

        with pytest.raises(StoreError) as exc_info:
            migrator.migrate()

        assert exc_info.value.step == "apply migration 000005_broken"
        assert "half_done" not in _tables(raw_db)
        assert migrator.current_version() == 4


class TestSymbolDepsUpgrade:
    """Migration 2 widens the legacy two-column symbol_deps table."""

    def test_rows_survive_with_empty_context(self, raw_db: Database) -> None:
        Migrator(raw_db.engine).migrate(target=1)
        assert _columns(raw_db, "symbol_deps") == ["id", "symbol_id", "dep_name"]
        raw_db.execute_raw(
            "INSERT INTO packages (path, name, created_at, updated_at) "
            "VALUES ('p', 'p', 'now', 'now')"
        )
        raw_db.execute_raw(
            "INSERT INTO files (package_id, path, created_at, updated_at) "
            "VALUES (1, 'p/a.go', 'now', 'now')"
        )
        raw_db.execute_raw("INSERT INTO symbols (file_id, kind, name) VALUES (1, 'func', 'Run')")
        raw_db.execute_raw("INSERT INTO symbol_deps (symbol_id, dep_name) VALUES (1, 'Open')")
        raw_db.execute_raw("INSERT INTO symbol_deps (symbol_id, dep_name) VALUES (1, 'Close')")

        Migrator(raw_db.engine).migrate()

        assert _columns(raw_db, "symbol_deps") == [
            "id",
            "symbol_id",
            "dep_name",
            "dep_package",
            "dep_kind",
        ]
        with raw_db.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT dep_name, dep_package, dep_kind FROM symbol_deps ORDER BY id")
            ).all()
        assert [tuple(r) for r in rows] == [("Open", "", ""), ("Close", "", "")]

    def test_uniqueness_covers_all_four_columns(self, raw_db: Database) -> None:
        Migrator(raw_db.engine).migrate()
        raw_db.execute_raw(
            "INSERT INTO packages (path, name, created_at, updated_at) "
            "VALUES ('p', 'p', 'now', 'now')"
        )
        raw_db.execute_raw(
            "INSERT INTO files (package_id, path, created_at, updated_at) "
            "VALUES (1, 'p/a.go', 'now', 'now')"
        )
        raw_db.execute_raw("INSERT INTO symbols (file_id, kind, name) VALUES (1, 'func', 'Run')")
        raw_db.execute_raw(
            "INSERT INTO symbol_deps (symbol_id, dep_name, dep_package, dep_kind) "
            "VALUES (1, 'Open', 'store', 'func')"
        )
        # Same name, different package: allowed
        raw_db.execute_raw(
            "INSERT INTO symbol_deps (symbol_id, dep_name, dep_package, dep_kind) "
            "VALUES (1, 'Open', 'cache', 'func')"
        )

        with pytest.raises(Exception, match="UNIQUE"):
            raw_db.execute_raw(
                "INSERT INTO symbol_deps (symbol_id, dep_name, dep_package, dep_kind) "
                "VALUES (1, 'Open', 'store', 'func')"
            )


class TestPatternFilesFold:
    """Migration 4 turns legacy pattern_files rows into edges."""

    def test_pattern_files_become_affects_edges(self, raw_db: Database) -> None:
        Migrator(raw_db.engine).migrate(target=3)
        raw_db.execute_raw(
            "INSERT INTO patterns (title, created_at, updated_at) "
            "VALUES ('Errors wrap', '2024-01-01T00:00:00Z', '2024-01-01T00:00:00Z')"
        )
        raw_db.execute_raw(
            "INSERT INTO pattern_files (pattern_id, file_path) VALUES (1, 'internal/a.go')"
        )
        raw_db.execute_raw(
            "INSERT INTO pattern_files (pattern_id, file_path) VALUES (1, 'internal/a.go')"
        )

        Migrator(raw_db.engine).migrate()

        with raw_db.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT from_type, from_id, to_type, to_ref, relation, source FROM edges")
            ).all()
        assert [tuple(r) for r in rows] == [
            ("pattern", 1, "file", "internal/a.go", "affects", "auto")
        ]
        assert "pattern_files" not in _tables(raw_db)
