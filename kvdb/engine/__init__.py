"""
Storage engine wrapper and transaction scopes.
"""

from kvdb.engine.store import Store
from kvdb.engine.transaction import ReadTransaction, WriteTransaction

__all__ = ["Store", "ReadTransaction", "WriteTransaction"]
