"""
Store - Transactional key-value API over an embedded LMDB environment.
"""

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import lmdb

from kvdb.engine.transaction import ENCODING, ReadTransaction, WriteTransaction
from kvdb.models.entry import Entry
from kvdb.models.exceptions import EngineError, InvalidKeyError
from kvdb.models.outcome import Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Store:
    """
    Durable, transactional store for string keys and string values.

    Provides:
    - get(key): Read a value from a snapshot
    - list_all(): All entries in ascending key order
    - put_if_absent(key, value): Create, rejecting existing keys
    - put(key, value): Insert or overwrite
    - delete(key): Remove a key
    - clear_all(): Remove every entry

    Concurrency:
    - Every operation runs exactly one engine transaction
    - The engine serializes write transactions; readers see a snapshot
      and never block or get blocked by the writer
    - Blocking engine calls run off the event loop: writes on one
      dedicated writer thread (arrival order), reads on a separate pool,
      so queued writers never hold up a read
    """

    # Default maximum size of the memory map (1GB, grown lazily on disk)
    DEFAULT_MAP_SIZE = 1024 * 1024 * 1024

    # Default number of reader threads (well under the engine's 126 reader slots)
    DEFAULT_READ_WORKERS = 16

    def __init__(
        self,
        storage_dir: str,
        map_size: int = DEFAULT_MAP_SIZE,
        read_workers: int = DEFAULT_READ_WORKERS,
    ) -> None:
        """
        Open (creating if needed) the store.

        Args:
            storage_dir: Directory holding the engine's data and lock files.
            map_size: Maximum database size in bytes.
            read_workers: Threads available to read operations.

        Raises:
            ValueError: On invalid arguments.
            EngineError: If the directory or environment cannot be opened.
        """
        if map_size <= 0:
            raise ValueError(f"map_size must be positive, got {map_size}")

        if read_workers <= 0:
            raise ValueError(f"read_workers must be positive, got {read_workers}")

        if not storage_dir or not storage_dir.strip():
            raise ValueError("storage_dir cannot be empty")

        self._storage_dir = os.path.abspath(storage_dir)
        self._map_size = map_size

        try:
            Path(self._storage_dir).mkdir(parents=True, exist_ok=True)
            self._env = lmdb.open(self._storage_dir, map_size=map_size, subdir=True)
            self._db = self._env.open_db()
        except (lmdb.Error, OSError) as e:
            logger.critical(f"Cannot open store at {self._storage_dir}: {e}")
            raise EngineError("open", e) from e

        self._max_key_size = self._env.max_key_size()
        self._closed = False

        # LMDB admits one writer at a time, so one thread is all writes need
        self._write_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kvdb-writer")
        self._read_executor = ThreadPoolExecutor(
            max_workers=read_workers, thread_name_prefix="kvdb-reader"
        )
        logger.info(f"Opened store at {self._storage_dir} (map_size={map_size})")

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    @property
    def max_key_size(self) -> int:
        return self._max_key_size

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def _engine_errors(self, operation: str) -> Iterator[None]:
        """Translate engine exceptions raised in the block into EngineError."""
        try:
            yield
        except lmdb.Error as e:
            raise EngineError(operation, e) from e

    @contextmanager
    def read(self, operation: str = "read") -> Iterator[ReadTransaction]:
        """
        Open a read transaction for the duration of the block.

        The transaction is released on every exit path.
        """
        with self._engine_errors(operation):
            txn = ReadTransaction(self._env.begin(db=self._db), self._db)
            try:
                yield txn
            finally:
                txn.abort()

    @contextmanager
    def write(self, operation: str = "write") -> Iterator[WriteTransaction]:
        """
        Open the write transaction for the duration of the block.

        Blocks until any other write transaction has finished. Commits when
        the block exits normally unless the block aborted it explicitly;
        aborts when the block raises.
        """
        with self._engine_errors(operation):
            txn = WriteTransaction(self._env.begin(db=self._db, write=True), self._db)
            try:
                yield txn
            except BaseException:
                txn.abort()
                raise
            txn.commit()

    def encode_key(self, key: str) -> bytes:
        """
        Encode a key for the engine.

        Raises:
            InvalidKeyError: If the key is empty or longer than the engine allows.
        """
        if not isinstance(key, str):
            raise InvalidKeyError(f"Expected str key, got {type(key).__name__}")

        try:
            raw = key.encode(ENCODING)
        except UnicodeEncodeError as e:
            raise InvalidKeyError(f"Key is not valid UTF-8: {e}") from e

        if not raw:
            raise InvalidKeyError("Key cannot be empty")
        if len(raw) > self._max_key_size:
            raise InvalidKeyError(
                f"Key too long: {len(raw)} bytes. Maximum {self._max_key_size} bytes."
            )
        return raw

    @staticmethod
    def encode_value(value: str) -> bytes:
        if not isinstance(value, str):
            raise TypeError(f"Expected str value, got {type(value).__name__}")
        return value.encode(ENCODING)

    def lookup_key(self, key: str) -> bytes | None:
        """Encode a key for a lookup, or None when no such key can be stored."""
        try:
            return self.encode_key(key)
        except InvalidKeyError:
            return None

    # Blocking primitives. Keys are validated before a transaction opens.

    def get_sync(self, key: str) -> str | None:
        raw_key = self.lookup_key(key)
        if raw_key is None:
            return None

        with self.read("get") as txn:
            return txn.get(raw_key)

    def list_all_sync(self) -> list[Entry]:
        with self.read("list_all") as txn:
            return list(txn.entries())

    def count_sync(self) -> int:
        with self.read("count") as txn:
            return txn.count()

    def put_if_absent_sync(self, key: str, value: str) -> Outcome:
        raw_key = self.encode_key(key)
        raw_value = self.encode_value(value)

        # Check and insert under the same write transaction
        with self.write("put_if_absent") as txn:
            if not txn.put(raw_key, raw_value, overwrite=False):
                txn.abort()
                return Outcome.ALREADY_EXISTS
            return Outcome.CREATED

    def put_sync(self, key: str, value: str) -> Outcome:
        raw_key = self.encode_key(key)
        raw_value = self.encode_value(value)

        with self.write("put") as txn:
            txn.put(raw_key, raw_value)
        return Outcome.UPDATED

    def delete_sync(self, key: str) -> Outcome:
        raw_key = self.lookup_key(key)
        if raw_key is None:
            return Outcome.NOT_FOUND

        with self.write("delete") as txn:
            if not txn.delete(raw_key):
                txn.abort()
                return Outcome.NOT_FOUND
            return Outcome.DELETED

    def clear_all_sync(self) -> None:
        with self.write("clear_all") as txn:
            txn.clear()

    async def _run(
        self, executor: ThreadPoolExecutor, operation: str, func: Callable[..., T], *args
    ) -> T:
        """Run a blocking primitive on one of the store's executors."""
        if self._closed:
            raise EngineError(operation, lmdb.Error("store is closed"))

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, func, *args)

    async def _read(self, operation: str, func: Callable[..., T], *args) -> T:
        return await self._run(self._read_executor, operation, func, *args)

    async def _write(self, operation: str, func: Callable[..., T], *args) -> T:
        return await self._run(self._write_executor, operation, func, *args)

    async def get(self, key: str) -> str | None:
        """
        Async retrieve a value by key.

        Args:
            key: The key to look up.

        Returns:
            The value if found, None otherwise (including keys the engine
            could never hold).
        """
        return await self._read("get", self.get_sync, key)

    async def list_all(self) -> list[Entry]:
        """
        Async snapshot of every entry.

        Returns:
            Entries in ascending key order as of the start of the read.
        """
        return await self._read("list_all", self.list_all_sync)

    async def count(self) -> int:
        return await self._read("count", self.count_sync)

    async def put_if_absent(self, key: str, value: str) -> Outcome:
        """
        Async create a key.

        Returns:
            Outcome.CREATED, or Outcome.ALREADY_EXISTS without any mutation.
        """
        return await self._write("put_if_absent", self.put_if_absent_sync, key, value)

    async def put(self, key: str, value: str) -> Outcome:
        """
        Async insert or update a key-value pair.

        Returns:
            Outcome.UPDATED.
        """
        return await self._write("put", self.put_sync, key, value)

    async def delete(self, key: str) -> Outcome:
        """
        Async delete a key.

        Returns:
            Outcome.DELETED, or Outcome.NOT_FOUND if the key was absent.
        """
        return await self._write("delete", self.delete_sync, key)

    async def clear_all(self) -> None:
        """Async remove every entry in a single write transaction."""
        await self._write("clear_all", self.clear_all_sync)

    def close(self) -> None:
        """
        Close the environment. Later operations raise EngineError.

        Waits for operations already handed to the executors to finish.
        """
        if self._closed:
            return
        self._closed = True
        self._write_executor.shutdown(wait=True)
        self._read_executor.shutdown(wait=True)
        self._env.close()
        logger.info(f"Closed store at {self._storage_dir}")

    async def __aenter__(self) -> "Store":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
