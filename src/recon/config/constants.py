"""Configuration constants.

Values here are part of the on-disk layout or the payload contract and are
not user-configurable. For configurable values, see models.py.
"""

# =============================================================================
# On-disk layout
# =============================================================================

DATA_DIR_NAME = ".recon"
"""Per-repository data directory."""

DB_FILE_NAME = "recon.db"
"""SQLite database inside the data directory."""

CONFIG_FILE_NAME = "config.yaml"
"""Repo-level YAML config inside the data directory."""

# =============================================================================
# Orient payload
# =============================================================================

RECENT_ACTIVITY_MAX = 5
"""Recent activity entries in the orient payload, regardless of repo size."""

GENERATED_MARKER_WINDOW = 4096
"""Leading bytes inspected for generated-code markers."""
