"""Tiered recall over promoted decisions and patterns."""

from recon.recall.engine import (
    STRATEGIES,
    ConnectedEdge,
    FallbackReason,
    RecallEngine,
    RecallItem,
    RecallOptions,
    RecallResult,
    Strategy,
    TryNext,
)

__all__ = [
    "STRATEGIES",
    "ConnectedEdge",
    "FallbackReason",
    "RecallEngine",
    "RecallItem",
    "RecallOptions",
    "RecallResult",
    "Strategy",
    "TryNext",
]
