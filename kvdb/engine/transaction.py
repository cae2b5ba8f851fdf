"""
Transaction scopes over an LMDB environment.
"""

from collections.abc import Iterator

import lmdb

from kvdb.models.entry import Entry

ENCODING = "utf-8"


class ReadTransaction:
    """
    Snapshot view of the store.

    Sees every commit that completed before it began and nothing after.
    Many read transactions may be open at once; they never block writers.
    """

    def __init__(self, txn: lmdb.Transaction, db: "lmdb._Database") -> None:
        """
        Initialize a read transaction wrapper.

        Args:
            txn: Open LMDB transaction.
            db: Database handle the transaction operates on.
        """
        self._txn = txn
        self._db = db
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def get(self, key: bytes) -> str | None:
        raw = self._txn.get(key, db=self._db)
        return None if raw is None else raw.decode(ENCODING)

    def entries(self) -> Iterator[Entry]:
        """Iterate entries in ascending key order."""
        for raw_key, raw_value in self._txn.cursor(db=self._db):
            yield Entry(key=raw_key.decode(ENCODING), value=raw_value.decode(ENCODING))

    def count(self) -> int:
        return self._txn.stat(self._db)["entries"]

    def abort(self) -> None:
        """Release the transaction without applying anything."""
        if not self._finished:
            self._finished = True
            self._txn.abort()


class WriteTransaction(ReadTransaction):
    """
    Mutating scope. At most one is open per environment at any time.

    Changes stay invisible to other transactions until commit().
    """

    def put(self, key: bytes, value: bytes, overwrite: bool = True) -> bool:
        """
        Store a value.

        Returns:
            False if overwrite is False and the key already exists.
        """
        return self._txn.put(key, value, overwrite=overwrite, db=self._db)

    def delete(self, key: bytes) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed.
        """
        return self._txn.delete(key, db=self._db)

    def clear(self) -> None:
        """Remove every entry, keeping the database itself."""
        self._txn.drop(self._db, delete=False)

    def commit(self) -> None:
        if not self._finished:
            self._finished = True
            self._txn.commit()
