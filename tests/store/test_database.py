"""Tests for the database connection manager."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text
from sqlmodel import select

from recon.core.errors import InputError, StoreError
from recon.store.database import Database, open_database
from recon.store.models import Decision


class TestDatabase:
    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "recon.db")
        try:
            db.execute_raw("SELECT 1")
            assert (tmp_path / "nested" / "dir").is_dir()
        finally:
            db.dispose()

    def test_pragmas_applied_on_connect(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "recon.db", busy_timeout_ms=1234)
        try:
            with db.engine.connect() as conn:
                assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"
                assert conn.execute(text("PRAGMA busy_timeout")).scalar() == 1234
                assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        finally:
            db.dispose()

    def test_open_database_runs_migrations(self, tmp_path: Path) -> None:
        db = open_database(tmp_path / "recon.db")
        try:
            with db.session() as session:
                assert session.exec(select(Decision)).all() == []
        finally:
            db.dispose()


class TestImmediateTransaction:
    def test_commits_on_success(self, db: Database) -> None:
        with db.immediate_transaction() as session:
            session.add(Decision(title="Use WAL", reasoning="readers never block"))

        with db.session() as session:
            titles = [d.title for d in session.exec(select(Decision)).all()]
        assert titles == ["Use WAL"]

    def test_rolls_back_on_exception(self, db: Database) -> None:
        with pytest.raises(RuntimeError), db.immediate_transaction() as session:
            session.add(Decision(title="Half written", reasoning="never visible"))
            session.flush()
            raise RuntimeError("step failed")

        with db.session() as session:
            assert session.exec(select(Decision)).all() == []

    def test_recon_errors_propagate_unchanged(self, db: Database) -> None:
        """Typed errors raised inside the transaction reach the caller as-is."""
        with pytest.raises(StoreError) as exc_info, db.immediate_transaction() as session:
            session.add(Decision(title="Half written", reasoning="never visible"))
            session.flush()
            raise StoreError.step_failed("insert search index", "no such table")

        assert exc_info.value.step == "insert search index"
        with db.session() as session:
            assert session.exec(select(Decision)).all() == []


class TestSession:
    def test_recon_errors_propagate_unchanged(self, db: Database) -> None:
        with pytest.raises(InputError) as exc_info, db.session():
            raise InputError.missing_field("query")

        assert exc_info.value.details == {"field": "query"}
        assert exc_info.value.__traceback__ is not None
