"""PostgreSQL driver built on asyncpg.

asyncpg returns results eagerly, so ``fetch`` hands back the complete row
list. Statements arrive with their parameters already inlined and no
server-side arguments. ``fetch`` still prepares the statement, so query
text must hold exactly one statement; ``execute`` (used for BEGIN, COMMIT,
SAVEPOINT and ROLLBACK) goes through the simple query protocol.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlcontract.driver.backend import record_to_row

if TYPE_CHECKING:
    import asyncpg

    from sqlcontract.models.config import ConnectionConfig
    from sqlcontract.models.result import Row

logger = logging.getLogger(__name__)


class PostgresConnection:
    """Wraps an asyncpg.Connection to satisfy the Connection protocol."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        """Initialize with an asyncpg connection."""
        self._conn = conn

    async def fetch(self, sql: str) -> list[Row]:
        """Run a statement and return its rows."""
        records = await self._conn.fetch(sql)
        return [record_to_row(r) for r in records]

    async def execute(self, sql: str) -> None:
        """Run a statement and discard the status string."""
        await self._conn.execute(sql)


class PostgresPool:
    """Wraps an asyncpg.Pool to satisfy the Pool protocol."""

    def __init__(self, pool: asyncpg.Pool, *, acquire_timeout: float | None = None) -> None:
        """Initialize with an asyncpg pool and the default acquire timeout."""
        self._pool = pool
        self._acquire_timeout = acquire_timeout

    async def acquire(self, *, timeout: float | None = None) -> PostgresConnection:
        """Lease a connection from the asyncpg pool."""
        conn = await self._pool.acquire(timeout=timeout or self._acquire_timeout)
        return PostgresConnection(conn)

    async def release(self, connection: PostgresConnection) -> None:
        """Return the underlying asyncpg connection to its pool."""
        await self._pool.release(connection._conn)

    async def close(self) -> None:
        """Close the connection pool."""
        await self._pool.close()


class PostgresDriver:
    """Creates asyncpg pools."""

    async def create_pool(self, config: ConnectionConfig) -> PostgresPool:
        """Create an asyncpg pool for ``config``."""
        import asyncpg as _asyncpg

        settings = config.pool
        logger.info(
            "Creating PostgreSQL pool for %s (min=%d, max=%d)",
            config.display_name,
            settings.min_size,
            settings.max_size,
        )
        pool = await _asyncpg.create_pool(
            config.dsn, min_size=settings.min_size, max_size=settings.max_size
        )
        return PostgresPool(pool, acquire_timeout=settings.acquire_timeout)
