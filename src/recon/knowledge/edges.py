"""Edges between claims and code entities.

An edge is uniquely identified by (from_type, from_id, to_type, to_ref,
relation). ``contradicts`` and ``related`` are symmetric: when both ends
are claims the service stores the reverse row as well and removes it
together with the forward row.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import PurePosixPath
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from recon.core.errors import InputError, StoreError, db_step
from recon.index.files import LANGUAGE_EXTENSIONS
from recon.store.database import Database
from recon.store.models import (
    BIDIRECTIONAL_RELATIONS,
    CLAIM_TYPES,
    Confidence,
    Decision,
    Edge,
    EdgeSource,
    EntityType,
    Pattern,
    Relation,
    utc_now,
)

logger = structlog.get_logger()

VALID_TO_TYPES: frozenset[str] = frozenset(t.value for t in EntityType)
VALID_RELATIONS: frozenset[str] = frozenset(r.value for r in Relation)
VALID_SOURCES: frozenset[str] = frozenset(s.value for s in EdgeSource)
VALID_CONFIDENCES: frozenset[str] = frozenset(c.value for c in Confidence)

FILE_SUFFIXES: frozenset[str] = frozenset(
    {ext for exts in LANGUAGE_EXTENSIONS.values() for ext in exts}
    | {".md", ".txt", ".json", ".yaml", ".yml", ".toml", ".sql", ".sh", ".mod", ".proto"}
)


def infer_ref_type(ref: str) -> str:
    """Guess what an ``affects`` reference names.

    ``internal/cli/root.go`` is a file, ``internal/cli.Run`` or ``store.Open``
    a symbol, and anything without a dot in its last segment a package.
    """
    last = ref.rsplit("/", 1)[-1]
    if PurePosixPath(last).suffix.lower() in FILE_SUFFIXES:
        return EntityType.FILE.value
    if "." in last:
        return EntityType.SYMBOL.value
    return EntityType.PACKAGE.value


@dataclass(frozen=True, slots=True)
class EdgeInfo:
    """Detached view of an edge row."""

    id: int
    from_type: str
    from_id: int
    to_type: str
    to_ref: str
    relation: str
    source: str
    confidence: str
    created_at: str

    @classmethod
    def from_row(cls, row: Edge) -> EdgeInfo:
        return cls(
            id=row.id,  # type: ignore[arg-type]
            from_type=row.from_type,
            from_id=row.from_id,
            to_type=row.to_type,
            to_ref=row.to_ref,
            relation=row.relation,
            source=row.source,
            confidence=row.confidence,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _reverse_applies(relation: str, to_type: str) -> bool:
    return relation in BIDIRECTIONAL_RELATIONS and to_type in CLAIM_TYPES


def insert_edge_if_absent(
    session: Session,
    *,
    from_type: str,
    from_id: int,
    to_type: str,
    to_ref: str,
    relation: str,
    source: str,
    confidence: str,
    created_at: str,
) -> bool:
    """INSERT OR IGNORE one edge row. Returns True when a row was written."""
    result = session.execute(
        text(
            """
            INSERT OR IGNORE INTO edges
                (from_type, from_id, to_type, to_ref, relation, source, confidence, created_at)
            VALUES (:from_type, :from_id, :to_type, :to_ref, :relation, :source,
                    :confidence, :created_at)
            """
        ),
        {
            "from_type": from_type,
            "from_id": from_id,
            "to_type": to_type,
            "to_ref": to_ref,
            "relation": relation,
            "source": source,
            "confidence": confidence,
            "created_at": created_at,
        },
    )
    return bool(result.rowcount)


class EdgeService:
    """Create, delete and list edges."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        from_type: str,
        from_id: int,
        to_type: str,
        to_ref: str,
        relation: str,
        *,
        source: str = EdgeSource.MANUAL.value,
        confidence: str = Confidence.MEDIUM.value,
    ) -> EdgeInfo:
        """Store an edge, plus its reverse for symmetric claim-to-claim relations.

        Raises:
            InputError: A field is missing or outside its allowed set.
            StoreError: The source claim does not exist, or the edge already
                exists (conflict).
        """
        self._validate(from_type, from_id, to_type, to_ref, relation, source, confidence)

        with self._db.immediate_transaction() as session:
            model = Decision if from_type == EntityType.DECISION.value else Pattern
            with db_step(f"load {from_type}"):
                owner = session.get(model, from_id)
            if owner is None:
                raise StoreError.not_found(from_type, from_id)

            now = utc_now()
            edge = Edge(
                from_type=from_type,
                from_id=from_id,
                to_type=to_type,
                to_ref=to_ref,
                relation=relation,
                source=source,
                confidence=confidence,
                created_at=now,
            )
            with db_step("insert edge"):
                session.add(edge)
                try:
                    session.flush()
                except IntegrityError as e:
                    raise StoreError.conflict(
                        f"edge already exists: "
                        f"{from_type}:{from_id} -> {to_type}:{to_ref} ({relation})",
                        from_type=from_type,
                        from_id=from_id,
                        to_type=to_type,
                        to_ref=to_ref,
                        relation=relation,
                    ) from e

            if _reverse_applies(relation, to_type):
                with db_step("insert reverse edge"):
                    insert_edge_if_absent(
                        session,
                        from_type=to_type,
                        from_id=int(to_ref),
                        to_type=from_type,
                        to_ref=str(from_id),
                        relation=relation,
                        source=source,
                        confidence=confidence,
                        created_at=now,
                    )

            info = EdgeInfo.from_row(edge)
            with db_step("commit edge tx"):
                session.commit()

        logger.info("edge_created", edge_id=info.id, relation=relation, to_type=to_type)
        return info

    def delete(self, edge_id: int) -> EdgeInfo:
        """Delete an edge and, for symmetric claim relations, its reverse row.

        Raises:
            StoreError: No edge has this id.
        """
        with self._db.immediate_transaction() as session:
            with db_step("load edge"):
                edge = session.get(Edge, edge_id)
            if edge is None:
                raise StoreError.not_found("edge", edge_id)
            info = EdgeInfo.from_row(edge)

            with db_step("delete edge"):
                session.delete(edge)
                session.flush()

            if _reverse_applies(info.relation, info.to_type):
                with db_step("delete reverse edge"):
                    session.execute(
                        text(
                            """
                            DELETE FROM edges
                            WHERE from_type = :from_type AND from_id = :from_id
                              AND to_type = :to_type AND to_ref = :to_ref
                              AND relation = :relation
                            """
                        ),
                        {
                            "from_type": info.to_type,
                            "from_id": int(info.to_ref),
                            "to_type": info.from_type,
                            "to_ref": str(info.from_id),
                            "relation": info.relation,
                        },
                    )
            with db_step("commit edge tx"):
                session.commit()

        logger.info("edge_deleted", edge_id=edge_id)
        return info

    def list_from(self, from_type: str, from_id: int) -> list[EdgeInfo]:
        """Edges leaving one claim."""
        stmt = (
            select(Edge)
            .where(Edge.from_type == from_type, Edge.from_id == from_id)
            .order_by(Edge.relation, Edge.to_type, Edge.to_ref)
        )
        return self._list("list edges from", stmt)

    def list_to(self, to_type: str, to_ref: str) -> list[EdgeInfo]:
        """Edges arriving at a code entity or claim."""
        stmt = (
            select(Edge)
            .where(Edge.to_type == to_type, Edge.to_ref == to_ref)
            .order_by(Edge.relation, Edge.from_type, Edge.from_id)
        )
        return self._list("list edges to", stmt)

    def list_all(self) -> list[EdgeInfo]:
        stmt = select(Edge).order_by(
            Edge.from_type, Edge.from_id, Edge.relation, Edge.to_type, Edge.to_ref
        )
        return self._list("list edges", stmt)

    def _list(self, step: str, stmt: Any) -> list[EdgeInfo]:
        with self._db.session() as session, db_step(step):
            return [EdgeInfo.from_row(row) for row in session.exec(stmt).all()]

    @staticmethod
    def _validate(
        from_type: str,
        from_id: int,
        to_type: str,
        to_ref: str,
        relation: str,
        source: str,
        confidence: str,
    ) -> None:
        if not from_type:
            raise InputError.missing_field("from_type")
        if from_type not in CLAIM_TYPES:
            raise InputError.invalid_value(
                "from_type", from_type, "edges originate from a decision or pattern"
            )
        if from_id is None or from_id <= 0:
            raise InputError.invalid_value("from_id", from_id, "must be a positive id")
        if not to_type:
            raise InputError.missing_field("to_type")
        if to_type not in VALID_TO_TYPES:
            raise InputError.invalid_value(
                "to_type", to_type, f"expected one of {', '.join(sorted(VALID_TO_TYPES))}"
            )
        if not to_ref or not to_ref.strip():
            raise InputError.missing_field("to_ref")
        if to_type in CLAIM_TYPES and not to_ref.isdigit():
            raise InputError.invalid_value("to_ref", to_ref, f"{to_type} refs are numeric ids")
        if not relation:
            raise InputError.missing_field("relation")
        if relation not in VALID_RELATIONS:
            raise InputError.invalid_value(
                "relation", relation, f"expected one of {', '.join(sorted(VALID_RELATIONS))}"
            )
        if source not in VALID_SOURCES:
            raise InputError.invalid_value("source", source, "expected manual or auto")
        if confidence not in VALID_CONFIDENCES:
            raise InputError.invalid_value("confidence", confidence, "expected low, medium or high")
