"""
Ledger state persistence — checkpoint model and stores.

JSON file by default; SQLite when the configured path has a .db suffix.
"""

from backend_inflow.database.models import LedgerState
from backend_inflow.database.state_store import (
    JsonFileStateStore,
    LedgerStateStore,
    SQLiteStateStore,
    get_state_store,
)

__all__ = [
    "JsonFileStateStore",
    "LedgerState",
    "LedgerStateStore",
    "SQLiteStateStore",
    "get_state_store",
]
