"""
SQLite-backed key-value store for tabledb.

This module keeps the whole shared keyspace in one SQLite file inside the
store location:

    kv:
        - key TEXT PRIMARY KEY (BINARY collation: code-point order)
        - value TEXT (JSON)

Invariants:
    - One SQLite file per store location
    - One connection per open store, owned by the store
    - Range scans page through the range by key, never by offset, so
      concurrent writes cannot duplicate or skip unrelated keys

How to change safely:
    - Schema migrations must be backward compatible
    - Keep ordering identical to InMemoryKeyValueStore
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sqlite3
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from ..errors import StoreError, StoreOpenError
from .base import KeyRange, KeyValueStore

logger = logging.getLogger(__name__)

DB_FILENAME = "store.sqlite3"


class SqliteKeyValueStore(KeyValueStore):
    """Key-value store on a single SQLite file.

    Thread safety:
        The connection is only used from the event loop; an asyncio lock
        serializes writes.

    Example:
        >>> store = SqliteKeyValueStore("/var/lib/tabledb")
        >>> await store.open()
        >>> await store.put("users:bob", {"age": 42})
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        location: str,
        create_if_missing: bool = True,
        error_if_exists: bool = False,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        page_size: int = 256,
    ) -> None:
        """Initialize the store.

        Args:
            location: Directory holding the SQLite file
            create_if_missing: Create the database if absent
            error_if_exists: Refuse to open an existing database
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            page_size: Rows fetched per query while scanning
        """
        if not location or not isinstance(location, str):
            raise ValueError("location argument must be a non-empty string.")
        super().__init__(
            location,
            create_if_missing=create_if_missing,
            error_if_exists=error_if_exists,
        )
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.page_size = page_size
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        """Path of the SQLite file."""
        return Path(self.location) / DB_FILENAME

    async def _raw_open(self) -> None:
        db_path = self.db_path
        exists = db_path.exists()

        if exists and self.error_if_exists:
            raise StoreOpenError(
                f"Invalid argument: {self.location}: exists (error_if_exists is true)",
                location=self.location,
            )
        if not exists and not self.create_if_missing:
            raise StoreOpenError(
                f"Invalid argument: {self.location}: does not exist (create_if_missing is false)",
                location=self.location,
            )

        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit
            check_same_thread=False,
        )
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._create_schema(conn)
        except sqlite3.Error as e:
            conn.close()
            raise StoreOpenError(f"Cannot open {db_path}: {e}", location=self.location)
        self._conn = conn

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript(f"""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            ) WITHOUT ROWID;

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES ({self.SCHEMA_VERSION}, strftime('%s', 'now') * 1000);
        """)

    async def _raw_close(self) -> None:
        async with self._lock:
            conn, self._conn = self._conn, None
            if conn is not None:
                conn.close()

    async def _raw_destroy(self) -> None:
        location = Path(self.location)
        if location.exists():
            shutil.rmtree(location)

    async def _raw_get(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Read failed: {e}")
        return row[0] if row else None

    async def _raw_put(self, key: str, raw: str) -> None:
        async with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO kv (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, raw),
                )
            except sqlite3.Error as e:
                raise StoreError(f"Write failed: {e}")

    async def _raw_delete(self, key: str) -> None:
        async with self._lock:
            try:
                self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            except sqlite3.Error as e:
                raise StoreError(f"Delete failed: {e}")

    def _page_query(self, key_range: KeyRange, after: Optional[str], size: int) -> Tuple[str, List]:
        """Build the query for the next page of a scan."""
        clauses: List[str] = []
        params: List = []
        for op, bound in (
            (">", key_range.gt),
            (">=", key_range.gte),
            ("<", key_range.lt),
            ("<=", key_range.lte),
        ):
            if bound is not None:
                clauses.append(f"key {op} ?")
                params.append(bound)
        if after is not None:
            clauses.append("key < ?" if key_range.reverse else "key > ?")
            params.append(after)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "DESC" if key_range.reverse else "ASC"
        params.append(size)
        return f"SELECT key, value FROM kv {where} ORDER BY key {order} LIMIT ?", params

    async def _raw_iterate(self, key_range: KeyRange) -> AsyncIterator[tuple[str, str]]:
        remaining = key_range.limit
        after: Optional[str] = None

        while True:
            self._ensure_open()
            size = self.page_size if remaining is None else min(self.page_size, remaining)
            sql, params = self._page_query(key_range, after, size)
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Scan failed: {e}")

            for key, raw in rows:
                yield key, raw

            if remaining is not None:
                remaining -= len(rows)
                if remaining <= 0:
                    return
            if len(rows) < size:
                return
            after = rows[-1][0]
