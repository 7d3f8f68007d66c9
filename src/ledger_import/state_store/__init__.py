"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Committed ledger entries (keyed by fingerprint)
- Committed fiscal receipts (keyed by stable internal id)
- Import runs

Re-committing the same record updates it in place.
"""

from .base import RecordStore
from .sqlite_store import ImportRunRecord, StateStore

__all__ = [
    "RecordStore",
    "StateStore",
    "ImportRunRecord",
]
