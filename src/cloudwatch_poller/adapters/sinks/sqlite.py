"""SQLite event sink.

emit() only queues the record; flush() writes the queue through aiosqlite.
"""

import asyncio
import json
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from cloudwatch_poller.core.models import EmittedRecord

_RECORDS_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tag TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    record TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_records_timestamp ON records(timestamp);
"""

_INSERT_RECORD = """
INSERT INTO records (tag, timestamp, record) VALUES (?, ?, ?)
"""

_SELECT_RECORDS_SINCE = """
SELECT tag, timestamp, record FROM records
WHERE timestamp > ?
ORDER BY timestamp ASC, id ASC
"""

_SELECT_RECORDS_SINCE_FOR_TAG = """
SELECT tag, timestamp, record FROM records
WHERE timestamp > ? AND tag = ?
ORDER BY timestamp ASC, id ASC
"""


def _safe_json_loads(data: str) -> dict[str, Any]:
    """Parse a stored record, returning an empty dict on decode error."""
    try:
        result: dict[str, Any] = json.loads(data)
        return result
    except json.JSONDecodeError:
        return {}


def _to_row(record: EmittedRecord) -> tuple[str, int, str]:
    return (record.tag, record.timestamp, json.dumps(record.record, default=str))


def _from_row(row: Any) -> EmittedRecord:
    return EmittedRecord(tag=row[0], timestamp=row[1], record=_safe_json_loads(row[2]))


def _select_query(since: float, tag: str | None) -> tuple[str, tuple[Any, ...]]:
    if tag is None:
        return _SELECT_RECORDS_SINCE, (since,)
    return _SELECT_RECORDS_SINCE_FOR_TAG, (since, tag)


class SQLiteEventSink:
    """SQLite implementation of BufferedEventSinkPort and ReadableEventSinkPort.

    File databases run in WAL mode so a reader (e.g. the /records endpoint)
    can share the file with the poller. For :memory: databases a persistent
    connection is kept since in-memory databases are connection-scoped.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._pending: deque[EmittedRecord] = deque()
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    @property
    def _in_memory(self) -> bool:
        return self._db_path == ":memory:"

    @property
    def pending(self) -> int:
        """Number of emitted records not yet flushed."""
        return len(self._pending)

    def emit(self, tag: str, timestamp: int, record: dict[str, Any]) -> None:
        """Queue one record for the next flush."""
        self._pending.append(EmittedRecord(tag=tag, timestamp=timestamp, record=record))

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._in_memory:
                self._persistent_conn = await aiosqlite.connect(":memory:")
                await self._persistent_conn.executescript(_RECORDS_SCHEMA)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(_RECORDS_SCHEMA)
            self._initialized = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self._ensure_initialized()
        if self._in_memory:
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._persistent_conn
            return
        db = await aiosqlite.connect(self._db_path)
        try:
            yield db
        finally:
            await db.close()

    async def flush(self) -> None:
        """Write all queued records in one transaction.

        If the write fails or is cancelled, the batch is put back at the front
        of the queue for the next flush.
        """
        if not self._pending:
            return
        batch = list(self._pending)
        self._pending.clear()
        try:
            async with self._connection() as db:
                try:
                    await db.executemany(_INSERT_RECORD, [_to_row(r) for r in batch])
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
        except BaseException:
            self._pending.extendleft(reversed(batch))
            raise

    async def read(
        self, since: float = 0, tag: str | None = None
    ) -> AsyncIterable[EmittedRecord]:
        """Read flushed records since the given timestamp.

        Returns records with timestamp > since, ordered by timestamp ascending.
        """
        query, params = _select_query(since, tag)
        async with self._connection() as db:
            async with db.execute(query, params) as cursor:
                async for row in cursor:
                    yield _from_row(row)

    async def close(self) -> None:
        """Close the persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False
