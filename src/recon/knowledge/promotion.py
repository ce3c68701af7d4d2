"""Verification and promotion of claims.

A claim becomes an active decision or pattern only when its automated check
passes. Every submission leaves a proposal row behind; the rest depends on
the outcome:

    passed  -> entity (active), evidence (drift ok), proposal promoted,
               search_index row, manual and auto-linked affects edges
    failed  -> evidence against the proposal (drift unknown), proposal
               stays pending

All writes for one claim share a single BEGIN IMMEDIATE transaction; any
failing step rolls the whole claim back and surfaces as a StoreError naming
that step.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import text
from sqlmodel import Session

from recon.config.models import IndexConfig
from recon.core.errors import InputError, ProjectError, StoreError, db_step
from recon.index.probes import RepoProbes
from recon.knowledge.autolink import AutoLinker
from recon.knowledge.checks import CheckOutcome, CheckRunner, ParsedCheck, parse_check
from recon.knowledge.edges import infer_ref_type, insert_edge_if_absent
from recon.knowledge.models import CheckDescriptor, ClaimInput, ClaimSummary, PromotionResult
from recon.store.database import Database
from recon.store.models import (
    CLAIM_TYPES,
    ClaimStatus,
    Confidence,
    Decision,
    DriftStatus,
    EdgeSource,
    EntityType,
    Evidence,
    Pattern,
    Proposal,
    ProposalStatus,
    Relation,
    utc_now,
)

logger = structlog.get_logger()

_ACTIVE_QUERIES = {
    EntityType.DECISION.value: """
        SELECT d.id, d.title, d.confidence, d.updated_at,
               COALESCE(e.drift_status, 'ok')
        FROM decisions d
        LEFT JOIN evidence e ON e.entity_type = 'decision' AND e.entity_id = d.id
        WHERE d.status = 'active'
        ORDER BY d.updated_at DESC, d.id DESC
    """,
    EntityType.PATTERN.value: """
        SELECT p.id, p.title, p.confidence, p.updated_at,
               COALESCE(e.drift_status, 'ok')
        FROM patterns p
        LEFT JOIN evidence e ON e.entity_type = 'pattern' AND e.entity_id = p.id
        WHERE p.status = 'active'
        ORDER BY p.updated_at DESC, p.id DESC
    """,
}

_TABLES = {EntityType.DECISION.value: "decisions", EntityType.PATTERN.value: "patterns"}


def _validate_kind(kind: str) -> str:
    kind = (kind or "").strip()
    if not kind:
        raise InputError.missing_field("kind")
    if kind not in CLAIM_TYPES:
        raise InputError.invalid_value("kind", kind, "expected decision or pattern")
    return kind


class PromotionPipeline:
    """Validates, verifies and stores claims."""

    def __init__(
        self,
        db: Database,
        probes: RepoProbes | None = None,
        index_config: IndexConfig | None = None,
    ) -> None:
        self._db = db
        self._probes = probes or RepoProbes()
        self._index = index_config or IndexConfig()

    def propose(self, claim: ClaimInput) -> PromotionResult:
        """Submit a claim.

        Raises:
            InputError: The claim is incomplete or its check spec is malformed.
                Nothing is written.
            StoreError: A write failed; the transaction is rolled back.
        """
        kind, confidence, check = self._validate(claim)
        entity_data = self._serialize(claim, kind, confidence)
        root = Path(claim.module_root)
        language = self._language(root)

        with self._db.immediate_transaction() as session:
            now = utc_now()
            proposal = Proposal(entity_type=kind, entity_data=entity_data, proposed_at=now)
            with db_step("insert proposal"):
                session.add(proposal)
                session.flush()
            proposal_id = proposal.id
            assert proposal_id is not None

            outcome = self._runner(session, root, language).run(check)

            entity_id: int | None = None
            edges_created = 0
            if outcome.passed:
                entity_id, edges_created = self._promote(
                    session, proposal, claim, kind, confidence, check, outcome, now
                )
            else:
                self._record_failure(session, proposal, claim, check, outcome, now)

            with db_step(f"commit {kind} tx"):
                session.commit()

        if outcome.passed:
            logger.info(
                "claim_promoted",
                kind=kind,
                entity_id=entity_id,
                proposal_id=proposal_id,
                edges=edges_created,
            )
        else:
            logger.info(
                "claim_pending",
                kind=kind,
                proposal_id=proposal_id,
                details=outcome.details,
            )

        return PromotionResult(
            proposal_id=proposal_id,
            entity_id=entity_id,
            promoted=outcome.passed,
            verification_passed=outcome.passed,
            verification_details=outcome.details,
            edges_created=edges_created,
        )

    def dry_run(self, check: CheckDescriptor, module_root: Path) -> CheckOutcome:
        """Validate and run a check without writing anything."""
        parsed = parse_check(check.type, check.spec)
        root = Path(module_root)
        language = self._language(root)
        with self._db.session() as session:
            return self._runner(session, root, language).run(parsed)

    def list_active(self, kind: str) -> list[ClaimSummary]:
        """Active decisions or patterns with their drift status, newest first."""
        kind = _validate_kind(kind)
        with self._db.session() as session, db_step(f"query {kind}s"):
            rows = session.execute(text(_ACTIVE_QUERIES[kind])).all()
        return [
            ClaimSummary(
                id=row[0],
                entity_type=kind,
                title=row[1],
                confidence=row[2],
                updated_at=row[3],
                drift_status=row[4],
            )
            for row in rows
        ]

    def update_confidence(self, kind: str, entity_id: int, confidence: str) -> None:
        """Change the confidence of an active decision or pattern.

        Raises:
            InputError: Unknown kind or a confidence other than low, medium
                or high.
            StoreError: No active claim with that id, or the update failed.
        """
        kind = _validate_kind(kind)
        confidence = (confidence or "").strip().lower()
        if not confidence:
            raise InputError.missing_field("confidence")
        if confidence not in {c.value for c in Confidence}:
            raise InputError.invalid_value("confidence", confidence, "expected low, medium or high")

        with self._db.immediate_transaction() as session:
            with db_step(f"update {kind} confidence"):
                result = session.execute(
                    text(
                        f"UPDATE {_TABLES[kind]} SET confidence = :confidence, "
                        "updated_at = :now WHERE id = :id AND status = 'active'"
                    ),
                    {"confidence": confidence, "now": utc_now(), "id": entity_id},
                )
            if result.rowcount == 0:
                raise StoreError.not_found(f"active {kind}", entity_id)
            with db_step(f"commit {kind} tx"):
                session.commit()

        logger.info("confidence_updated", kind=kind, entity_id=entity_id, confidence=confidence)

    # ------------------------------------------------------------------

    @staticmethod
    def _validate(claim: ClaimInput) -> tuple[str, str, ParsedCheck]:
        kind = _validate_kind(claim.kind)
        if not claim.title or not claim.title.strip():
            raise InputError.missing_field("title")
        if not claim.evidence_summary or not claim.evidence_summary.strip():
            raise InputError.missing_field("evidence summary")
        if claim.check is None:
            raise InputError.missing_field("check type")
        check = parse_check(claim.check.type, claim.check.spec)

        confidence = (claim.confidence or "").strip() or Confidence.MEDIUM.value
        if confidence not in {c.value for c in Confidence}:
            raise InputError.invalid_value("confidence", confidence, "expected low, medium or high")
        for ref in claim.affects:
            if not ref or not ref.strip():
                raise InputError.invalid_value("affects", ref, "references must be non-empty")
        return kind, confidence, check

    @staticmethod
    def _serialize(claim: ClaimInput, kind: str, confidence: str) -> str:
        data: dict[str, Any] = {
            "kind": kind,
            "title": claim.title,
            "body": claim.body,
            "confidence": confidence,
            "evidence_summary": claim.evidence_summary,
            "check": {
                "type": claim.check.type if claim.check else "",
                "spec": claim.check.spec if claim.check else None,
            },
            "affects": list(claim.affects),
        }
        if kind == EntityType.PATTERN.value:
            data["example"] = claim.example
        try:
            return json.dumps(data)
        except (TypeError, ValueError) as e:
            raise StoreError.serialization_failed("proposal data", str(e)) from e

    def _language(self, root: Path) -> str | None:
        try:
            return self._probes.module_descriptor(root).language
        except ProjectError as e:
            logger.debug("module_descriptor_unavailable", root=str(root), error=str(e))
            return None

    def _runner(self, session: Session, root: Path, language: str | None) -> CheckRunner:
        return CheckRunner(
            session,
            root,
            language,
            excluded_dirs=self._index.excluded_dirs,
            max_file_size_mb=self._index.max_file_size_mb,
        )

    def _promote(
        self,
        session: Session,
        proposal: Proposal,
        claim: ClaimInput,
        kind: str,
        confidence: str,
        check: ParsedCheck,
        outcome: CheckOutcome,
        now: str,
    ) -> tuple[int, int]:
        entity: Decision | Pattern
        if kind == EntityType.DECISION.value:
            entity = Decision(
                title=claim.title,
                reasoning=claim.body,
                confidence=confidence,
                status=ClaimStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            content = f"{claim.body}\n{claim.evidence_summary}"
        else:
            entity = Pattern(
                title=claim.title,
                description=claim.body,
                example=claim.example,
                confidence=confidence,
                status=ClaimStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            content = f"{claim.body}\n{claim.example}\n{claim.evidence_summary}"

        with db_step(f"insert {kind}"):
            session.add(entity)
            session.flush()
        entity_id = entity.id
        assert entity_id is not None

        evidence = Evidence(
            entity_type=kind,
            entity_id=entity_id,
            summary=claim.evidence_summary,
            check_type=check.type.value,
            check_spec=check.spec_json(),
            baseline=json.dumps(outcome.baseline),
            last_verified_at=now,
            last_result=json.dumps({"passed": True, "details": outcome.details}),
            drift_status=DriftStatus.OK.value,
        )
        with db_step(f"insert {kind} evidence"):
            session.add(evidence)
            session.flush()

        with db_step("update proposal"):
            proposal.status = ProposalStatus.PROMOTED.value
            proposal.entity_id = entity_id
            proposal.verified_at = now
            proposal.promoted_at = now
            session.add(proposal)
            session.flush()

        with db_step("insert search index"):
            session.execute(
                text(
                    "INSERT INTO search_index (title, content, entity_type, entity_id) "
                    "VALUES (:title, :content, :entity_type, :entity_id)"
                ),
                {
                    "title": claim.title,
                    "content": content,
                    "entity_type": kind,
                    "entity_id": entity_id,
                },
            )

        with db_step("insert edges"):
            edges_created = self._insert_edges(session, claim, kind, entity_id, now)
        return entity_id, edges_created

    @staticmethod
    def _insert_edges(
        session: Session, claim: ClaimInput, kind: str, entity_id: int, now: str
    ) -> int:
        created = 0
        for ref in claim.affects:
            ref = ref.strip()
            created += insert_edge_if_absent(
                session,
                from_type=kind,
                from_id=entity_id,
                to_type=infer_ref_type(ref),
                to_ref=ref,
                relation=Relation.AFFECTS.value,
                source=EdgeSource.MANUAL.value,
                confidence=Confidence.HIGH.value,
                created_at=now,
            )
        for detected in AutoLinker(session).detect(f"{claim.title} {claim.body}"):
            created += insert_edge_if_absent(
                session,
                from_type=kind,
                from_id=entity_id,
                to_type=detected.to_type,
                to_ref=detected.to_ref,
                relation=detected.relation,
                source=EdgeSource.AUTO.value,
                confidence=Confidence.MEDIUM.value,
                created_at=now,
            )
        return created

    @staticmethod
    def _record_failure(
        session: Session,
        proposal: Proposal,
        claim: ClaimInput,
        check: ParsedCheck,
        outcome: CheckOutcome,
        now: str,
    ) -> None:
        assert proposal.id is not None
        evidence = Evidence(
            entity_type="proposal",
            entity_id=proposal.id,
            summary=f"verification failed: {outcome.details}",
            check_type=check.type.value,
            check_spec=check.spec_json(),
            baseline=json.dumps(outcome.baseline),
            last_verified_at=now,
            last_result=json.dumps({"passed": False, "details": outcome.details}),
            drift_status=DriftStatus.UNKNOWN.value,
        )
        with db_step("insert proposal evidence"):
            session.add(evidence)
            session.flush()

        with db_step("update proposal"):
            proposal.verified_at = now
            session.add(proposal)
            session.flush()
