"""
Data models for the key-value store.
"""

from kvdb.models.entry import Entry
from kvdb.models.outcome import Outcome

__all__ = [
    "Entry",
    "Outcome",
]
