"""SQLite driver built on aiosqlite.

aiosqlite has no pool of its own, so ``SQLitePool`` keeps a small set of
connections bounded by a semaphore. Connections run in autocommit mode
(``isolation_level=None``) so BEGIN/COMMIT/ROLLBACK are issued explicitly,
the same way they are against PostgreSQL.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite

from sqlcontract.driver.backend import record_to_row

if TYPE_CHECKING:
    from sqlcontract.models.config import ConnectionConfig
    from sqlcontract.models.result import Row

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class SQLiteConnection:
    """Wraps aiosqlite.Connection to satisfy the Connection protocol."""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Initialize with an aiosqlite connection."""
        self._conn = conn

    async def fetch(self, sql: str) -> list[Row]:
        """Run a statement and return its rows."""
        async with self._conn.execute(sql) as cursor:
            rows = await cursor.fetchall()
        return [record_to_row(r) for r in rows]

    async def execute(self, sql: str) -> None:
        """Run a statement and discard any rows."""
        async with self._conn.execute(sql):
            pass


class SQLitePool:
    """A bounded pool of aiosqlite connections to one database file.

    Every in-memory connection is its own database, so ``:memory:`` pools
    are capped at a single connection.
    """

    def __init__(
        self,
        database: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        acquire_timeout: float | None = None,
    ) -> None:
        """Initialize the pool; no connection is opened until ``open()``."""
        self._database = database
        self._max_size = 1 if database == MEMORY else max_size
        self._min_size = min(min_size, self._max_size)
        self._acquire_timeout = acquire_timeout
        self._slots = asyncio.Semaphore(self._max_size)
        self._idle: list[aiosqlite.Connection] = []
        self._leased: set[aiosqlite.Connection] = set()
        self._closed = False

    @property
    def size(self) -> int:
        """Number of open connections, idle or leased."""
        return len(self._idle) + len(self._leased)

    async def open(self) -> None:
        """Open ``min_size`` connections up front."""
        while len(self._idle) < self._min_size:
            self._idle.append(await self._connect())

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self._database, isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys=ON")
        if self._database != MEMORY:
            # WAL lets pooled readers proceed while one connection writes
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA busy_timeout=5000")
        return conn

    async def acquire(self, *, timeout: float | None = None) -> SQLiteConnection:
        """Lease a connection, opening a new one if none is idle."""
        if self._closed:
            raise RuntimeError("SQLite pool is closed")
        timeout = timeout or self._acquire_timeout
        if timeout is None:
            await self._slots.acquire()
        else:
            await asyncio.wait_for(self._slots.acquire(), timeout)
        try:
            conn = self._idle.pop() if self._idle else await self._connect()
        except BaseException:
            self._slots.release()
            raise
        self._leased.add(conn)
        return SQLiteConnection(conn)

    async def release(self, connection: SQLiteConnection) -> None:
        """Return a connection to the idle set, or close it if the pool closed."""
        conn = connection._conn
        self._leased.discard(conn)
        self._slots.release()
        if self._closed:
            await conn.close()
        else:
            self._idle.append(conn)

    async def close(self) -> None:
        """Close idle connections; leased ones close when they come back."""
        self._closed = True
        if self._leased:
            logger.warning(
                "Closing SQLite pool for %s with %d connection(s) still leased",
                self._database,
                len(self._leased),
            )
        idle, self._idle = self._idle, []
        for conn in idle:
            await conn.close()


class SQLiteDriver:
    """Creates SQLite pools."""

    async def create_pool(self, config: ConnectionConfig) -> SQLitePool:
        """Create and open a pool for the database file named in ``config``."""
        database = config.dsn
        if database != MEMORY:
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        settings = config.pool
        logger.info("Creating SQLite pool for %s (max=%d)", database, settings.max_size)
        pool = SQLitePool(
            database,
            min_size=settings.min_size,
            max_size=settings.max_size,
            acquire_timeout=settings.acquire_timeout,
        )
        await pool.open()
        return pool
