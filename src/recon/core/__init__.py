"""Core module exports."""

from recon.core.errors import (
    ConfigError,
    ErrorCode,
    InputError,
    ProjectError,
    ReconError,
    StoreError,
    SymbolLookupError,
    db_step,
)
from recon.core.logging import configure_logging, get_log_file_path, get_logger

__all__ = [
    # Errors
    "ConfigError",
    "ErrorCode",
    "InputError",
    "ProjectError",
    "ReconError",
    "StoreError",
    "SymbolLookupError",
    "db_step",
    # Logging
    "configure_logging",
    "get_log_file_path",
    "get_logger",
]
