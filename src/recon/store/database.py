"""Database engine and scoped transactions.

This module provides:
- Database: Connection manager with WAL mode for concurrent readers
- session(): ORM session for reads and single-statement writes
- immediate_transaction(): BEGIN IMMEDIATE session for multi-step writes

Every multi-step write (claim promotion, edge pairs) goes through
immediate_transaction so a partially written claim is never visible to
readers. Nothing here retries; a busy database surfaces to the caller once
the busy timeout elapses.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlmodel import Session, create_engine

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()

DEFAULT_BUSY_TIMEOUT_MS = 30000


class Database:
    """SQLite connection manager with WAL mode for concurrent access."""

    def __init__(self, db_path: Path, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self.engine = self._create_engine()

    def _create_engine(self) -> Engine:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(
            engine,
            "connect",
            partial(_configure_pragmas, busy_timeout_ms=self._busy_timeout_ms),
        )
        return engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for low-volume operations."""
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def immediate_transaction(self) -> Generator[Session, None, None]:
        """
        Session with BEGIN IMMEDIATE for serializable writes.

        BEGIN IMMEDIATE acquires a RESERVED lock up front, blocking other
        writers but allowing readers. The session commits after the block
        exits normally and rolls back on any exception.
        """
        with Session(self.engine) as session:
            session.execute(text("BEGIN IMMEDIATE"))
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def execute_raw(self, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Execute raw SQL for one-off statements."""
        with self.engine.begin() as conn:
            return conn.execute(text(sql), params or {})

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()


def _configure_pragmas(dbapi_conn: Any, _connection_record: Any, *, busy_timeout_ms: int) -> None:
    """Configure SQLite for concurrent access and performance."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def open_database(db_path: Path, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> Database:
    """Open the store at ``db_path`` and bring its schema up to date."""
    from recon.store.migrations import Migrator

    db = Database(db_path, busy_timeout_ms=busy_timeout_ms)
    Migrator(db.engine).migrate()
    return db
