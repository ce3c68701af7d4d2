"""Store module exports."""

from recon.store.database import Database, open_database
from recon.store.migrations import MIGRATIONS, Migration, Migrator
from recon.store.sync_state import SyncState, load_sync_state, upsert_sync_state

__all__ = [
    "Database",
    "open_database",
    "MIGRATIONS",
    "Migration",
    "Migrator",
    "SyncState",
    "load_sync_state",
    "upsert_sync_state",
]
