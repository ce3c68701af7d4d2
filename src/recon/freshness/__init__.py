"""Freshness oracle exports."""

from recon.freshness.oracle import (
    CHECKS,
    Freshness,
    FreshnessOracle,
    FreshnessReport,
    StaleReason,
    Verdict,
)

__all__ = [
    "CHECKS",
    "Freshness",
    "FreshnessOracle",
    "FreshnessReport",
    "StaleReason",
    "Verdict",
]
