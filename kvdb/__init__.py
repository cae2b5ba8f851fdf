"""
LMDB-backed transactional key-value store.

This package provides a durable key-value store with:
- get(key) - snapshot read
- list_all() - ordered snapshot of every entry
- put_if_absent(key, value) - atomic create, rejects duplicates
- put(key, value) - unconditional upsert
- delete(key) / clear_all() - removal inside a write transaction
"""

from kvdb.engine.store import Store
from kvdb.models.entry import Entry
from kvdb.models.exceptions import EngineError, InvalidKeyError, MalformedRequestError
from kvdb.models.outcome import Outcome

__all__ = [
    "Store",
    "Entry",
    "Outcome",
    "EngineError",
    "InvalidKeyError",
    "MalformedRequestError",
]
