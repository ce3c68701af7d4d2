"""Config module exports."""

from recon.config.loader import get_db_path, load_config
from recon.config.models import (
    DatabaseConfig,
    IndexConfig,
    LoggingConfig,
    OrientConfig,
    RecallConfig,
    ReconConfig,
)

__all__ = [
    "load_config",
    "get_db_path",
    "ReconConfig",
    "DatabaseConfig",
    "IndexConfig",
    "LoggingConfig",
    "OrientConfig",
    "RecallConfig",
]
