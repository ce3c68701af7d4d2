"""Exact symbol lookup over the index tables."""

from recon.find.service import FindOptions, FindResult, FindService, SymbolInfo

__all__ = [
    "FindOptions",
    "FindResult",
    "FindService",
    "SymbolInfo",
]
