"""Versioned schema migrations.

Each Migration is an ordered tuple of SQL statements applied inside one
BEGIN IMMEDIATE transaction together with its ``schema_migrations`` row, so a
failing statement leaves neither partial DDL nor a bookkeeping entry behind.
Applied versions are skipped, which makes ``migrate()`` idempotent.

History:
    1 initial   Index tables, decisions, evidence, proposals, sync_state,
                search_index. symbol_deps has the original two-column shape.
    2 symbol_deps_context
                Widens symbol_deps with dep_package/dep_kind (default '')
                and unique on all four columns. Existing rows are kept.
    3 patterns  Patterns table plus the pattern_files link table.
    4 edges     Generic edges table; pattern_files rows become
                pattern -> file 'affects' edges and the table is dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text

from recon.core.errors import db_step
from recon.store.models import utc_now

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Migration:
    """One schema version."""

    version: int
    name: str
    statements: tuple[str, ...]

    @property
    def label(self) -> str:
        return f"{self.version:06d}_{self.name}"


_INITIAL = (
    """
    CREATE TABLE IF NOT EXISTS packages (
        id          INTEGER PRIMARY KEY,
        path        TEXT UNIQUE NOT NULL,
        name        TEXT NOT NULL,
        import_path TEXT,
        file_count  INTEGER DEFAULT 0,
        line_count  INTEGER DEFAULT 0,
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
        id          INTEGER PRIMARY KEY,
        package_id  INTEGER REFERENCES packages(id),
        path        TEXT UNIQUE NOT NULL,
        language    TEXT NOT NULL DEFAULT '',
        lines       INTEGER NOT NULL DEFAULT 0,
        hash        TEXT NOT NULL DEFAULT '',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS symbols (
        id          INTEGER PRIMARY KEY,
        file_id     INTEGER REFERENCES files(id) ON DELETE CASCADE,
        kind        TEXT NOT NULL,
        name        TEXT NOT NULL,
        signature   TEXT,
        body        TEXT,
        line_start  INTEGER NOT NULL DEFAULT 0,
        line_end    INTEGER NOT NULL DEFAULT 0,
        exported    INTEGER NOT NULL DEFAULT 0,
        receiver    TEXT NOT NULL DEFAULT '',
        UNIQUE(file_id, kind, name, receiver)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS imports (
        id            INTEGER PRIMARY KEY,
        from_file_id  INTEGER REFERENCES files(id) ON DELETE CASCADE,
        to_path       TEXT NOT NULL,
        to_package_id INTEGER REFERENCES packages(id),
        alias         TEXT,
        import_type   TEXT NOT NULL,
        UNIQUE(from_file_id, to_path)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS symbol_deps (
        id        INTEGER PRIMARY KEY,
        symbol_id INTEGER REFERENCES symbols(id) ON DELETE CASCADE,
        dep_name  TEXT NOT NULL,
        UNIQUE(symbol_id, dep_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS decisions (
        id          INTEGER PRIMARY KEY,
        title       TEXT NOT NULL,
        reasoning   TEXT NOT NULL,
        confidence  TEXT NOT NULL DEFAULT 'medium',
        status      TEXT NOT NULL DEFAULT 'active',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS evidence (
        id               INTEGER PRIMARY KEY,
        entity_type      TEXT NOT NULL,
        entity_id        INTEGER NOT NULL,
        summary          TEXT NOT NULL,
        check_type       TEXT,
        check_spec       TEXT,
        baseline         TEXT,
        last_verified_at TEXT,
        last_result      TEXT,
        drift_status     TEXT DEFAULT 'ok'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS proposals (
        id          INTEGER PRIMARY KEY,
        entity_type TEXT NOT NULL,
        entity_data TEXT NOT NULL,
        status      TEXT NOT NULL DEFAULT 'pending',
        entity_id   INTEGER,
        proposed_at TEXT NOT NULL,
        verified_at TEXT,
        promoted_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_state (
        id                 INTEGER PRIMARY KEY CHECK (id = 1),
        last_sync_at       TEXT NOT NULL,
        last_sync_commit   TEXT,
        last_sync_dirty    INTEGER NOT NULL DEFAULT 0,
        indexed_file_count INTEGER NOT NULL DEFAULT 0,
        index_fingerprint  TEXT NOT NULL
    )
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS search_index USING fts5 (
        title,
        content,
        entity_type UNINDEXED,
        entity_id UNINDEXED,
        tokenize='porter'
    )
    """,
)

_SYMBOL_DEPS_CONTEXT = (
    "ALTER TABLE symbol_deps RENAME TO symbol_deps_old",
    """
    CREATE TABLE symbol_deps (
        id          INTEGER PRIMARY KEY,
        symbol_id   INTEGER REFERENCES symbols(id) ON DELETE CASCADE,
        dep_name    TEXT NOT NULL,
        dep_package TEXT NOT NULL DEFAULT '',
        dep_kind    TEXT NOT NULL DEFAULT '',
        UNIQUE(symbol_id, dep_name, dep_package, dep_kind)
    )
    """,
    """
    INSERT INTO symbol_deps (id, symbol_id, dep_name, dep_package, dep_kind)
    SELECT id, symbol_id, dep_name, '', ''
    FROM symbol_deps_old
    """,
    "DROP TABLE symbol_deps_old",
)

_PATTERNS = (
    """
    CREATE TABLE IF NOT EXISTS patterns (
        id          INTEGER PRIMARY KEY,
        title       TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        example     TEXT NOT NULL DEFAULT '',
        confidence  TEXT NOT NULL DEFAULT 'medium',
        status      TEXT NOT NULL DEFAULT 'active',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pattern_files (
        id         INTEGER PRIMARY KEY,
        pattern_id INTEGER REFERENCES patterns(id) ON DELETE CASCADE,
        file_path  TEXT NOT NULL
    )
    """,
)

_EDGES = (
    """
    CREATE TABLE IF NOT EXISTS edges (
        id          INTEGER PRIMARY KEY,
        from_type   TEXT NOT NULL,
        from_id     INTEGER NOT NULL,
        to_type     TEXT NOT NULL,
        to_ref      TEXT NOT NULL,
        relation    TEXT NOT NULL,
        source      TEXT NOT NULL DEFAULT 'manual',
        confidence  TEXT NOT NULL DEFAULT 'medium',
        created_at  TEXT NOT NULL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_edges_unique
        ON edges(from_type, from_id, to_type, to_ref, relation)
    """,
    "CREATE INDEX IF NOT EXISTS idx_edges_from ON edges(from_type, from_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_type, to_ref)",
    """
    INSERT OR IGNORE INTO edges
        (from_type, from_id, to_type, to_ref, relation, source, confidence, created_at)
    SELECT 'pattern', pf.pattern_id, 'file', pf.file_path, 'affects', 'auto', 'medium',
           COALESCE(p.created_at, strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
    FROM pattern_files pf
    LEFT JOIN patterns p ON p.id = pf.pattern_id
    """,
    "DROP TABLE IF EXISTS pattern_files",
)

MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "initial", _INITIAL),
    Migration(2, "symbol_deps_context", _SYMBOL_DEPS_CONTEXT),
    Migration(3, "patterns", _PATTERNS),
    Migration(4, "edges", _EDGES),
)

_BOOKKEEPING = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version    INTEGER PRIMARY KEY,
    name       TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""


class Migrator:
    """Applies pending migrations in version order.

    The migration list is injected so tests can run a truncated history
    (to build a legacy schema) or a deliberately failing step.
    """

    def __init__(self, engine: Engine, migrations: Sequence[Migration] = MIGRATIONS) -> None:
        versions = [m.version for m in migrations]
        if versions != sorted(set(versions)):
            raise ValueError(f"Migration versions must be unique and ascending: {versions}")
        self._engine = engine
        self._migrations = tuple(migrations)

    def applied_versions(self) -> set[int]:
        with db_step("read schema version"), self._engine.connect() as conn:
            conn.exec_driver_sql(_BOOKKEEPING)
            conn.commit()
            rows = conn.execute(text("SELECT version FROM schema_migrations"))
            return {int(row[0]) for row in rows}

    def pending(self, target: int | None = None) -> list[Migration]:
        applied = self.applied_versions()
        return [
            m
            for m in self._migrations
            if m.version not in applied and (target is None or m.version <= target)
        ]

    def current_version(self) -> int:
        return max(self.applied_versions(), default=0)

    def migrate(self, target: int | None = None) -> list[int]:
        """Apply every pending migration up to ``target`` (all when None).

        Returns:
            Versions applied by this call; empty when already up to date.

        Raises:
            StoreError: A statement failed. That migration is rolled back and
                later ones are not attempted.
        """
        applied: list[int] = []
        for migration in self.pending(target):
            with db_step(f"apply migration {migration.label}"), self._engine.connect() as conn:
                self._apply(conn, migration)
            logger.info("migration_applied", version=migration.version, name=migration.name)
            applied.append(migration.version)
        return applied

    @staticmethod
    def _apply(conn: Connection, migration: Migration) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")
        try:
            for statement in migration.statements:
                conn.exec_driver_sql(statement)
            conn.execute(
                text(
                    "INSERT INTO schema_migrations (version, name, applied_at) "
                    "VALUES (:version, :name, :applied_at)"
                ),
                {"version": migration.version, "name": migration.name, "applied_at": utc_now()},
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
