"""SQLModel definitions for the recon knowledge store.

Tables are created by the versioned migrations in migrations.py, never by
``SQLModel.metadata.create_all``; these classes mirror the migrated shape so
reads and single-row writes can use the ORM.

Two groups of tables:
- Index tables (packages, files, symbols, imports, symbol_deps): written by
  the external indexer, read here.
- Knowledge tables (decisions, patterns, evidence, proposals, edges,
  sync_state): written by the promotion pipeline and the edge service.

The FTS5 ``search_index`` virtual table has no model; it is queried with
raw SQL.
"""

from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel

# ============================================================================
# ENUMS
# ============================================================================


class Confidence(str, Enum):
    """Caller-declared confidence of a claim or edge."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClaimStatus(str, Enum):
    """Lifecycle of a decision or pattern.

    Claims are created active by the promotion pipeline; archived is set by
    hand outside this package.
    """

    PENDING = "pending"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ProposalStatus(str, Enum):
    PENDING = "pending"
    PROMOTED = "promoted"


class DriftStatus(str, Enum):
    """Externally computed judgment of whether evidence still holds."""

    OK = "ok"
    DRIFTING = "drifting"
    UNKNOWN = "unknown"


class EntityType(str, Enum):
    """Kinds of things an edge can point at (and, for claims, originate from)."""

    DECISION = "decision"
    PATTERN = "pattern"
    PACKAGE = "package"
    FILE = "file"
    SYMBOL = "symbol"


CLAIM_TYPES: frozenset[str] = frozenset((EntityType.DECISION.value, EntityType.PATTERN.value))
"""Entity types that own rows in decisions/patterns and can be edge sources."""


class Relation(str, Enum):
    AFFECTS = "affects"
    EVIDENCED_BY = "evidenced_by"
    SUPERSEDES = "supersedes"
    CONTRADICTS = "contradicts"
    RELATED = "related"
    REINFORCES = "reinforces"


BIDIRECTIONAL_RELATIONS: frozenset[str] = frozenset(
    (Relation.CONTRADICTS.value, Relation.RELATED.value)
)
"""Relations stored as two directed rows."""


class EdgeSource(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


def utc_now() -> str:
    """Current time as RFC3339 UTC text, the storage format for all timestamps."""
    return format_timestamp(datetime.now(UTC))


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


# ============================================================================
# INDEX TABLES (owned by the external indexer)
# ============================================================================


class Package(SQLModel, table=True):
    """A module/package directory in the indexed repository."""

    __tablename__ = "packages"

    id: int | None = Field(default=None, primary_key=True)
    path: str = Field(unique=True)
    name: str
    import_path: str | None = None
    file_count: int = Field(default=0)
    line_count: int = Field(default=0)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class File(SQLModel, table=True):
    """Tracked source file."""

    __tablename__ = "files"

    id: int | None = Field(default=None, primary_key=True)
    package_id: int | None = Field(default=None, foreign_key="packages.id")
    path: str = Field(unique=True)
    language: str = Field(default="")
    lines: int = Field(default=0)
    hash: str = Field(default="")
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Symbol(SQLModel, table=True):
    """Declared symbol within a file."""

    __tablename__ = "symbols"

    id: int | None = Field(default=None, primary_key=True)
    file_id: int | None = Field(default=None, foreign_key="files.id")
    kind: str
    name: str
    signature: str | None = None
    body: str | None = None
    line_start: int = Field(default=0)
    line_end: int = Field(default=0)
    exported: bool = Field(default=False)
    receiver: str = Field(default="")


class Import(SQLModel, table=True):
    """Import edge from a file to a path, resolved to a package when internal."""

    __tablename__ = "imports"

    id: int | None = Field(default=None, primary_key=True)
    from_file_id: int | None = Field(default=None, foreign_key="files.id")
    to_path: str
    to_package_id: int | None = Field(default=None, foreign_key="packages.id")
    alias: str | None = None
    import_type: str = Field(default="internal")


class SymbolDep(SQLModel, table=True):
    """Dependency of a symbol on a named entity, qualified by package and kind."""

    __tablename__ = "symbol_deps"

    id: int | None = Field(default=None, primary_key=True)
    symbol_id: int | None = Field(default=None, foreign_key="symbols.id")
    dep_name: str
    dep_package: str = Field(default="")
    dep_kind: str = Field(default="")


# ============================================================================
# KNOWLEDGE TABLES
# ============================================================================


class Decision(SQLModel, table=True):
    """A recorded design decision."""

    __tablename__ = "decisions"

    id: int | None = Field(default=None, primary_key=True)
    title: str
    reasoning: str
    confidence: str = Field(default=Confidence.MEDIUM.value)
    status: str = Field(default=ClaimStatus.ACTIVE.value)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Pattern(SQLModel, table=True):
    """A recurring code pattern with an optional example snippet."""

    __tablename__ = "patterns"

    id: int | None = Field(default=None, primary_key=True)
    title: str
    description: str = Field(default="")
    example: str = Field(default="")
    confidence: str = Field(default=Confidence.MEDIUM.value)
    status: str = Field(default=ClaimStatus.ACTIVE.value)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class Evidence(SQLModel, table=True):
    """Verification record for a claim (or for a proposal whose check failed)."""

    __tablename__ = "evidence"

    id: int | None = Field(default=None, primary_key=True)
    entity_type: str
    entity_id: int
    summary: str
    check_type: str | None = None
    check_spec: str | None = None
    baseline: str | None = None
    last_verified_at: str | None = None
    last_result: str | None = None
    drift_status: str = Field(default=DriftStatus.OK.value)


class Proposal(SQLModel, table=True):
    """Raw claim as submitted, kept whether or not it was promoted."""

    __tablename__ = "proposals"

    id: int | None = Field(default=None, primary_key=True)
    entity_type: str
    entity_data: str
    status: str = Field(default=ProposalStatus.PENDING.value)
    entity_id: int | None = None
    proposed_at: str = Field(default_factory=utc_now)
    verified_at: str | None = None
    promoted_at: str | None = None


class Edge(SQLModel, table=True):
    """Directed relation from a claim to a code entity or another claim."""

    __tablename__ = "edges"

    id: int | None = Field(default=None, primary_key=True)
    from_type: str
    from_id: int
    to_type: str
    to_ref: str
    relation: str
    source: str = Field(default=EdgeSource.MANUAL.value)
    confidence: str = Field(default=Confidence.MEDIUM.value)
    created_at: str = Field(default_factory=utc_now)


class SyncStateRow(SQLModel, table=True):
    """Last successful index run (singleton row, id=1)."""

    __tablename__ = "sync_state"

    id: int = Field(default=1, primary_key=True)
    last_sync_at: str
    last_sync_commit: str | None = None
    last_sync_dirty: bool = Field(default=False)
    indexed_file_count: int = Field(default=0)
    index_fingerprint: str


class SchemaMigration(SQLModel, table=True):
    """Applied migration bookkeeping."""

    __tablename__ = "schema_migrations"

    version: int = Field(primary_key=True)
    name: str
    applied_at: str = Field(default_factory=utc_now)
