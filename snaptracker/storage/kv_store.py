"""Ordered byte-key stores used to persist peer records.

A store holds one logical table ("bucket") of raw byte keys and values, kept in
ascending key order. Point operations are serialized by an internal lock so the
store may be shared across request threads.
"""

from __future__ import annotations

import bisect
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from snaptracker.utils.exceptions import KeyNotFoundError, StoreError

logger = logging.getLogger(__name__)

# visit(key, value) -> continue scanning
ScanVisitor = Callable[[bytes, bytes], bool]


class KeyValueStore(ABC):
    """Ordered byte-key store with point and range operations."""

    @abstractmethod
    def get(self, key: bytes) -> bytes:
        """Return the value at ``key``.

        Raises:
            KeyNotFoundError: ``key`` is not present
            StoreError: the backend failed

        """

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Store ``value`` at ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Remove ``key``. Removing an absent key is not an error."""

    @abstractmethod
    def scan(self, start_key: bytes, max_count: int, visit: ScanVisitor) -> None:
        """Visit up to ``max_count`` entries in ascending key order from ``start_key``.

        Scanning stops early when ``visit`` returns False.
        """

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryKeyValueStore(KeyValueStore):
    """In-process store backed by a dict and a sorted key list."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._keys: list[bytes] = []
        self._lock = threading.Lock()

    def get(self, key: bytes) -> bytes:
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                msg = "key not found"
                raise KeyNotFoundError(msg, {"key": key.hex()}) from None

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            if key not in self._data:
                bisect.insort(self._keys, key)
            self._data[key] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._keys.pop(bisect.bisect_left(self._keys, key))

    def scan(self, start_key: bytes, max_count: int, visit: ScanVisitor) -> None:
        with self._lock:
            start = bisect.bisect_left(self._keys, start_key)
            rows = [(k, self._data[k]) for k in self._keys[start : start + max_count]]
        for key, value in rows:
            if not visit(key, value):
                break

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """Store backed by a SQLite table with a BLOB primary key.

    SQLite compares BLOBs with memcmp, so ``ORDER BY k`` is raw byte order.
    """

    def __init__(self, db_path: Path | str, bucket: str = "peers"):
        """Open (and create if needed) the database at ``db_path``.

        Args:
            db_path: SQLite database file, or ":memory:"
            bucket: Table name holding the key space

        """
        if not bucket.isidentifier():
            msg = f"Invalid bucket name: {bucket!r}"
            raise StoreError(msg)
        self.db_path = str(db_path)
        self.bucket = bucket
        self._lock = threading.Lock()
        self.db = self._init_database()

    def _init_database(self) -> sqlite3.Connection:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            db = sqlite3.connect(self.db_path, check_same_thread=False)
            db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.bucket} (
                    k BLOB PRIMARY KEY,
                    v BLOB NOT NULL
                ) WITHOUT ROWID
                """
            )
            db.commit()
        except sqlite3.Error as e:
            msg = f"Failed to open store {self.db_path}: {e}"
            raise StoreError(msg) from e
        logger.debug("Opened peer store %s (bucket %s)", self.db_path, self.bucket)
        return db

    def get(self, key: bytes) -> bytes:
        with self._lock:
            try:
                row = self.db.execute(
                    f"SELECT v FROM {self.bucket} WHERE k = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e
        if row is None:
            msg = "key not found"
            raise KeyNotFoundError(msg, {"key": key.hex()})
        return bytes(row[0])

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            try:
                with self.db:
                    self.db.execute(
                        f"INSERT OR REPLACE INTO {self.bucket} (k, v) VALUES (?, ?)",
                        (key, value),
                    )
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

    def delete(self, key: bytes) -> None:
        with self._lock:
            try:
                with self.db:
                    self.db.execute(f"DELETE FROM {self.bucket} WHERE k = ?", (key,))
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e

    def scan(self, start_key: bytes, max_count: int, visit: ScanVisitor) -> None:
        with self._lock:
            try:
                rows = self.db.execute(
                    f"SELECT k, v FROM {self.bucket} WHERE k >= ? ORDER BY k LIMIT ?",
                    (start_key, max_count),
                ).fetchall()
            except sqlite3.Error as e:
                raise StoreError(str(e)) from e
        for key, value in rows:
            if not visit(bytes(key), bytes(value)):
                break

    def close(self) -> None:
        with self._lock:
            self.db.close()
