"""Tiered recall over promoted claims.

Strategies run in order until one returns rows:

    fts           ranked full-text match, decisions and patterns
    fts_legacy    ranked full-text match, decisions only
    like          substring match, decisions and patterns
    like_legacy   substring match, decisions only

A strategy either returns rows or signals "try next" with a reason. A
``legacy_schema`` signal (no patterns table) restricts the rest of the run
to legacy strategies. A ``syntax`` signal (the FTS engine rejected the
query) skips the remaining full-text strategies. Any other database error
is fatal.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from recon.config.models import RecallConfig
from recon.core.errors import InputError, StoreError
from recon.store.database import Database
from recon.store.models import CLAIM_TYPES, EntityType

logger = structlog.get_logger()


class FallbackReason(str, Enum):
    SYNTAX = "syntax"
    LEGACY_SCHEMA = "legacy_schema"


SYNTAX_MARKERS = (
    "fts5: syntax error",
    "unterminated string",
    "no such column",
    "unknown special query",
    "malformed match",
)
LEGACY_SCHEMA_MARKER = "no such table: patterns"

_COLUMNS = """
    {kind} AS entity_type,
    {alias}.id AS entity_id,
    {alias}.title AS title,
    {alias}.{body} AS body,
    {alias}.confidence AS confidence,
    {alias}.updated_at AS updated_at,
    COALESCE(e.summary, '') AS evidence_summary,
    COALESCE(e.drift_status, 'ok') AS drift_status
"""

_FTS_SQL = """
SELECT
    search_index.entity_type,
    CAST(search_index.entity_id AS INTEGER),
    COALESCE(d.title, p.title),
    COALESCE(d.reasoning, p.description),
    COALESCE(d.confidence, p.confidence),
    COALESCE(d.updated_at, p.updated_at),
    COALESCE(e.summary, ''),
    COALESCE(e.drift_status, 'ok')
FROM search_index
LEFT JOIN decisions d
    ON search_index.entity_type = 'decision' AND d.id = search_index.entity_id
LEFT JOIN patterns p
    ON search_index.entity_type = 'pattern' AND p.id = search_index.entity_id
LEFT JOIN evidence e
    ON e.entity_type = search_index.entity_type AND e.entity_id = search_index.entity_id
WHERE search_index MATCH :query
  AND ((search_index.entity_type = 'decision' AND d.status = 'active')
    OR (search_index.entity_type = 'pattern' AND p.status = 'active'))
ORDER BY search_index.rank
LIMIT :limit
"""

_FTS_LEGACY_SQL = """
SELECT
    search_index.entity_type,
    CAST(search_index.entity_id AS INTEGER),
    d.title,
    d.reasoning,
    d.confidence,
    d.updated_at,
    COALESCE(e.summary, ''),
    COALESCE(e.drift_status, 'ok')
FROM search_index
JOIN decisions d ON d.id = search_index.entity_id
LEFT JOIN evidence e ON e.entity_type = 'decision' AND e.entity_id = d.id
WHERE search_index MATCH :query
  AND search_index.entity_type = 'decision'
  AND d.status = 'active'
ORDER BY search_index.rank
LIMIT :limit
"""

_LIKE_DECISIONS = f"""
SELECT {_COLUMNS.format(kind="'decision'", alias="d", body="reasoning")}
FROM decisions d
LEFT JOIN evidence e ON e.entity_type = 'decision' AND e.entity_id = d.id
WHERE d.status = 'active'
  AND (d.title LIKE :pattern ESCAPE '\\'
    OR d.reasoning LIKE :pattern ESCAPE '\\'
    OR COALESCE(e.summary, '') LIKE :pattern ESCAPE '\\')
"""

_LIKE_PATTERNS = f"""
SELECT {_COLUMNS.format(kind="'pattern'", alias="p", body="description")}
FROM patterns p
LEFT JOIN evidence e ON e.entity_type = 'pattern' AND e.entity_id = p.id
WHERE p.status = 'active'
  AND (p.title LIKE :pattern ESCAPE '\\'
    OR p.description LIKE :pattern ESCAPE '\\'
    OR COALESCE(e.summary, '') LIKE :pattern ESCAPE '\\')
"""

_LIKE_ORDER = "ORDER BY updated_at DESC, entity_id DESC LIMIT :limit"

_LIKE_SQL = f"{_LIKE_DECISIONS}\nUNION ALL\n{_LIKE_PATTERNS}\n{_LIKE_ORDER}"
_LIKE_LEGACY_SQL = f"{_LIKE_DECISIONS}\n{_LIKE_ORDER}"

_EDGES_SQL = """
SELECT to_type, to_ref, relation
FROM edges
WHERE from_type = :from_type AND from_id = :from_id
ORDER BY relation, to_type
"""


@dataclass(frozen=True, slots=True)
class Strategy:
    name: str
    sql: str
    full_text: bool
    legacy: bool

    @property
    def step(self) -> str:
        return "fts recall query" if self.full_text else "fallback recall query"


STRATEGIES: tuple[Strategy, ...] = (
    Strategy("fts", _FTS_SQL, full_text=True, legacy=False),
    Strategy("fts_legacy", _FTS_LEGACY_SQL, full_text=True, legacy=True),
    Strategy("like", _LIKE_SQL, full_text=False, legacy=False),
    Strategy("like_legacy", _LIKE_LEGACY_SQL, full_text=False, legacy=True),
)


@dataclass(frozen=True, slots=True)
class TryNext:
    reason: FallbackReason
    error: str


@dataclass(frozen=True, slots=True)
class RecallOptions:
    limit: int = 0
    kind: str = ""


class ConnectedEdge(BaseModel):
    to_type: str
    to_ref: str
    relation: str


class RecallItem(BaseModel):
    entity_type: str
    decision_id: int | None = None
    pattern_id: int | None = None
    title: str
    reasoning: str
    confidence: str
    updated_at: str
    evidence_summary: str = ""
    evidence_drift_status: str = "ok"
    connected_edges: list[ConnectedEdge] = Field(default_factory=list)

    @property
    def entity_id(self) -> int:
        return self.decision_id if self.decision_id is not None else self.pattern_id or 0


class RecallResult(BaseModel):
    query: str
    strategy: str = ""
    items: list[RecallItem] = Field(default_factory=list)


def _classify(message: str, full_text: bool) -> FallbackReason | None:
    lowered = message.lower()
    if LEGACY_SCHEMA_MARKER in lowered:
        return FallbackReason.LEGACY_SCHEMA
    if full_text and any(marker in lowered for marker in SYNTAX_MARKERS):
        return FallbackReason.SYNTAX
    return None


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class RecallEngine:
    """Retrieves active decisions and patterns for a free-text query."""

    def __init__(
        self,
        db: Database,
        config: RecallConfig | None = None,
        strategies: Sequence[Strategy] = STRATEGIES,
    ) -> None:
        self._db = db
        self._config = config or RecallConfig()
        self._strategies = tuple(strategies)

    def recall(self, query: str, options: RecallOptions | None = None) -> RecallResult:
        """Run the strategy chain and enrich each hit with its outgoing edges.

        Raises:
            InputError: Empty query or unknown kind filter.
            StoreError: A query failed for a reason other than FTS syntax or
                a missing patterns table.
        """
        options = options or RecallOptions()
        query = (query or "").strip()
        if not query:
            raise InputError.missing_field("query")
        kind = options.kind.strip()
        if kind and kind not in CLAIM_TYPES:
            raise InputError.invalid_value("kind", kind, "expected decision or pattern")
        limit = options.limit if options.limit > 0 else self._config.default_limit

        with self._db.session() as session:
            strategy_name, rows = self._retrieve(session, query, limit)
            items = [self._to_item(row) for row in rows]
            if kind:
                items = [item for item in items if item.entity_type == kind]
            for item in items:
                item.connected_edges = self._edges_for(session, item)

        logger.debug("recall_done", query=query, strategy=strategy_name, hits=len(items))
        return RecallResult(query=query, strategy=strategy_name, items=items)

    def _retrieve(self, session: Session, query: str, limit: int) -> tuple[str, list]:
        skip_full_text = False
        legacy_only = False
        for strategy in self._strategies:
            if strategy.full_text and skip_full_text:
                continue
            if legacy_only and not strategy.legacy:
                continue
            outcome = self._run(session, strategy, query, limit)
            if isinstance(outcome, TryNext):
                logger.info(
                    "recall_fallback",
                    strategy=strategy.name,
                    reason=outcome.reason.value,
                    error=outcome.error,
                )
                if outcome.reason is FallbackReason.LEGACY_SCHEMA:
                    legacy_only = True
                else:
                    skip_full_text = True
                continue
            return strategy.name, outcome
        return "", []

    @staticmethod
    def _run(session: Session, strategy: Strategy, query: str, limit: int) -> list | TryNext:
        params: dict[str, object] = {"limit": limit}
        if strategy.full_text:
            params["query"] = query
        else:
            params["pattern"] = _like_pattern(query)
        try:
            return list(session.execute(text(strategy.sql), params).all())
        except SQLAlchemyError as e:
            session.rollback()
            message = str(getattr(e, "orig", None) or e)
            reason = _classify(message, strategy.full_text)
            if reason is None:
                raise StoreError.step_failed(strategy.step, message) from e
            return TryNext(reason=reason, error=message)

    @staticmethod
    def _to_item(row: Sequence) -> RecallItem:
        entity_type, entity_id = row[0], int(row[1])
        return RecallItem(
            entity_type=entity_type,
            decision_id=entity_id if entity_type == EntityType.DECISION.value else None,
            pattern_id=entity_id if entity_type == EntityType.PATTERN.value else None,
            title=row[2] or "",
            reasoning=row[3] or "",
            confidence=row[4] or "",
            updated_at=row[5] or "",
            evidence_summary=row[6] or "",
            evidence_drift_status=row[7] or "ok",
        )

    @staticmethod
    def _edges_for(session: Session, item: RecallItem) -> list[ConnectedEdge]:
        try:
            rows = session.execute(
                text(_EDGES_SQL),
                {"from_type": item.entity_type, "from_id": item.entity_id},
            ).all()
        except SQLAlchemyError as e:
            session.rollback()
            logger.debug(
                "recall_edges_skipped",
                entity_type=item.entity_type,
                entity_id=item.entity_id,
                error=str(e),
            )
            return []
        return [ConnectedEdge(to_type=r[0], to_ref=r[1], relation=r[2]) for r in rows]
