"""Persisted local storage backed by SQLite.

Three logical namespaces live in one database file:

* ``kv``: small scalar values (the device identity).
* ``pending_events``: the ordered queue of undelivered events.
* ``dead_events``: pending rows that can no longer be decoded.

Every aiosqlite/sqlite3 failure is re-raised as
:class:`~pyblerelay.exceptions.RelayStorageError`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from pyblerelay.exceptions import RelayStorageError

_logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pending_events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        payload TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dead_events (
        seq INTEGER PRIMARY KEY,
        payload TEXT NOT NULL,
        discarded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
)


class Storage:
    """Single-connection async SQLite store.

    Usage::

        storage = Storage("relay.sqlite3")
        await storage.open()
        ...
        await storage.close()
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        """Open the database and create tables if missing."""
        if self._conn is not None:
            return
        try:
            conn = await aiosqlite.connect(self._path)
            if self._path != ":memory:":
                await conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                await conn.execute(statement)
            await conn.commit()
        except (sqlite3.Error, OSError) as exc:
            raise RelayStorageError(f"Failed to open storage at {self._path}: {exc}") from exc
        self._conn = conn
        _logger.debug("Storage opened path=%s", self._path)

    async def close(self) -> None:
        conn = self._conn
        self._conn = None
        if conn is None:
            return
        try:
            await conn.close()
        except sqlite3.Error:
            _logger.debug("Storage close failed", exc_info=True)
        _logger.debug("Storage closed path=%s", self._path)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize access and commit (or roll back) as one unit."""
        conn = self._conn
        if conn is None:
            raise RelayStorageError("Storage is not open")
        async with self._lock:
            try:
                yield conn
                await conn.commit()
            except sqlite3.Error as exc:
                await conn.rollback()
                raise RelayStorageError(f"Storage operation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Key/value namespace
    # ------------------------------------------------------------------

    async def get_value(self, key: str) -> str | None:
        async with self._transaction() as conn:
            async with conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return None if row is None else str(row[0])

    async def set_value(self, key: str, value: str) -> None:
        async with self._transaction() as conn:
            await conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    async def delete_value(self, key: str) -> None:
        async with self._transaction() as conn:
            await conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    # ------------------------------------------------------------------
    # Pending-event namespace
    # ------------------------------------------------------------------

    async def append_pending(self, payload: dict[str, Any]) -> int:
        """Append a JSON payload; returns its sequence number."""
        async with self._transaction() as conn:
            cursor = await conn.execute(
                "INSERT INTO pending_events (payload) VALUES (?)",
                (json.dumps(payload, separators=(",", ":")),),
            )
            seq = cursor.lastrowid
            await cursor.close()
        if seq is None:
            raise RelayStorageError("Insert into pending_events returned no row id")
        return int(seq)

    async def list_pending(self) -> list[tuple[int, dict[str, Any]]]:
        """All pending payloads in enqueue order."""
        async with self._transaction() as conn:
            async with conn.execute("SELECT seq, payload FROM pending_events ORDER BY seq") as cursor:
                rows = await cursor.fetchall()
        return [(int(seq), json.loads(payload)) for seq, payload in rows]

    async def pop_all_pending(self) -> list[tuple[int, dict[str, Any]]]:
        """Return all pending payloads and delete them in the same transaction."""
        async with self._transaction() as conn:
            async with conn.execute("SELECT seq, payload FROM pending_events ORDER BY seq") as cursor:
                rows = await cursor.fetchall()
            await conn.execute("DELETE FROM pending_events")
        return [(int(seq), json.loads(payload)) for seq, payload in rows]

    async def delete_pending(self, seqs: Sequence[int]) -> int:
        """Delete the given sequence numbers; returns how many were removed."""
        if not seqs:
            return 0
        async with self._transaction() as conn:
            cursor = await conn.executemany(
                "DELETE FROM pending_events WHERE seq = ?",
                [(seq,) for seq in seqs],
            )
            removed = cursor.rowcount
            await cursor.close()
        return max(removed, 0)

    async def count_pending(self) -> int:
        async with self._transaction() as conn:
            async with conn.execute("SELECT COUNT(*) FROM pending_events") as cursor:
                row = await cursor.fetchone()
        return 0 if row is None else int(row[0])

    # ------------------------------------------------------------------
    # Dead-letter namespace
    # ------------------------------------------------------------------

    async def dead_letter(self, rows: Sequence[tuple[int, Any]]) -> int:
        """Move *rows* out of the pending queue into ``dead_events``.

        Rows already gone from ``pending_events`` (e.g. after a drain) are
        still recorded. Returns how many rows were recorded.
        """
        if not rows:
            return 0
        async with self._transaction() as conn:
            await conn.executemany(
                "INSERT OR REPLACE INTO dead_events (seq, payload) VALUES (?, ?)",
                [(seq, json.dumps(payload, separators=(",", ":"))) for seq, payload in rows],
            )
            await conn.executemany(
                "DELETE FROM pending_events WHERE seq = ?",
                [(seq,) for seq, _payload in rows],
            )
        return len(rows)

    async def count_dead(self) -> int:
        async with self._transaction() as conn:
            async with conn.execute("SELECT COUNT(*) FROM dead_events") as cursor:
                row = await cursor.fetchone()
        return 0 if row is None else int(row[0])
