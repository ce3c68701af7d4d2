"""Claim verification, promotion and edges."""

from recon.knowledge.autolink import AutoLinker, DetectedEdge, contains_word
from recon.knowledge.checks import (
    CheckOutcome,
    CheckRunner,
    CheckType,
    ParsedCheck,
    parse_check,
)
from recon.knowledge.edges import EdgeInfo, EdgeService, infer_ref_type
from recon.knowledge.models import CheckDescriptor, ClaimInput, ClaimSummary, PromotionResult
from recon.knowledge.promotion import PromotionPipeline

__all__ = [
    "AutoLinker",
    "CheckDescriptor",
    "CheckOutcome",
    "CheckRunner",
    "CheckType",
    "ClaimInput",
    "ClaimSummary",
    "DetectedEdge",
    "EdgeInfo",
    "EdgeService",
    "ParsedCheck",
    "PromotionPipeline",
    "PromotionResult",
    "contains_word",
    "infer_ref_type",
    "parse_check",
]
