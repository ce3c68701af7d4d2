"""Inputs and results of the promotion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel


@dataclass(frozen=True, slots=True)
class CheckDescriptor:
    """Check type and its parameters, as a mapping or JSON text."""

    type: str
    spec: dict[str, Any] | str | None = None


@dataclass(frozen=True, slots=True)
class ClaimInput:
    """A decision or pattern submitted for promotion.

    ``example`` is only stored for patterns. ``affects`` lists manual
    references (package paths, file paths, ``pkg.Symbol``) that become
    ``affects`` edges when the claim is promoted.
    """

    kind: str
    title: str
    body: str = ""
    evidence_summary: str = ""
    check: CheckDescriptor | None = None
    confidence: str = ""
    example: str = ""
    module_root: Path = field(default_factory=Path.cwd)
    affects: tuple[str, ...] = ()


class PromotionResult(BaseModel):
    proposal_id: int
    entity_id: int | None = None
    promoted: bool
    verification_passed: bool
    verification_details: str
    edges_created: int = 0


class ClaimSummary(BaseModel):
    """An active claim as listed for review."""

    id: int
    entity_type: str
    title: str
    confidence: str
    drift_status: str
    updated_at: str
