"""Connection broker: leases pooled connections and returns them exactly once."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING

from sqlcontract.errors import ConnectionLeaseError, ConnectionReleasedError

if TYPE_CHECKING:
    from sqlcontract.driver.backend import Connection, Driver, Pool
    from sqlcontract.events import LifecycleEvents
    from sqlcontract.models.config import ConnectionConfig
    from sqlcontract.models.result import Row

logger = logging.getLogger(__name__)

_handle_ids = itertools.count(1)


class ConnectionHandle:
    """A leased connection.

    Statements on one handle are serialized through ``lock``, so several
    queries issued concurrently inside one transaction run one after
    another on the connection instead of overlapping.
    """

    def __init__(self, connection: Connection, *, direct: bool = False) -> None:
        """Wrap a driver connection that has just been leased."""
        self.id = next(_handle_ids)
        self.connection = connection
        self.direct = direct
        self.released = False
        self.lock = asyncio.Lock()

    def __repr__(self) -> str:
        state = "released" if self.released else "leased"
        return f"<ConnectionHandle {self.id} {state}{' direct' if self.direct else ''}>"

    def ensure_active(self) -> None:
        """Raise if the handle has already gone back to the pool."""
        if self.released:
            raise ConnectionReleasedError(f"Connection {self.id} has already been released")

    async def fetch(self, sql: str) -> list[Row]:
        """Run a statement on the connection and return its rows."""
        self.ensure_active()
        async with self.lock:
            return await self.connection.fetch(sql)

    async def execute(self, sql: str) -> None:
        """Run a statement on the connection, ignoring any rows."""
        self.ensure_active()
        async with self.lock:
            await self.connection.execute(sql)


class ConnectionBroker:
    """Leases connections from one database's pool.

    The pool is created on first use. Pool-managed leases notify
    ``on_connect``/``on_disconnect`` observers; direct leases do not.
    """

    def __init__(self, config: ConnectionConfig, driver: Driver, events: LifecycleEvents) -> None:
        """Initialize for one connection configuration; no pool is opened yet."""
        self._config = config
        self._driver = driver
        self._events = events
        self._pool: Pool | None = None
        self._pool_lock = asyncio.Lock()
        self._closed = False
        self.leased = 0
        self.released = 0

    @property
    def outstanding(self) -> int:
        """Leases not yet released."""
        return self.leased - self.released

    async def _get_pool(self) -> Pool:
        if self._pool is None:
            async with self._pool_lock:
                if self._pool is None:
                    self._pool = await self._driver.create_pool(self._config)
        return self._pool

    async def lease(self, *, direct: bool = False) -> ConnectionHandle:
        """Lease a connection from the pool.

        Pool and driver failures (including an exhausted pool timing out)
        surface as ``ConnectionLeaseError``.
        """
        if self._closed:
            raise ConnectionLeaseError(f"Database {self._config.display_name} has been closed")
        try:
            pool = await self._get_pool()
            connection = await pool.acquire()
        except Exception as exc:
            raise ConnectionLeaseError(
                f"Failed to lease a connection to {self._config.display_name}: {exc!r}"
            ) from exc

        handle = ConnectionHandle(connection, direct=direct)
        self.leased += 1
        logger.debug("Leased connection %d (%d outstanding)", handle.id, self.outstanding)
        if not direct:
            try:
                await self._events.connect(handle)
            except BaseException as exc:
                # Cancelled while observers were notified; the caller never gets the handle
                await self.release_after(handle, exc)
                raise
        return handle

    async def release(self, handle: ConnectionHandle) -> None:
        """Return a leased connection to the pool. Releasing twice raises."""
        handle.ensure_active()
        handle.released = True
        self.released += 1
        try:
            if not handle.direct:
                await self._events.disconnect(handle)
        finally:
            if self._pool is not None:
                await self._pool.release(handle.connection)
        logger.debug("Released connection %d (%d outstanding)", handle.id, self.outstanding)

    async def release_after(self, handle: ConnectionHandle, exc: BaseException) -> None:
        """Release ``handle`` while ``exc`` is propagating.

        A release failure is logged and noted on ``exc`` instead of
        replacing it.
        """
        try:
            await self.release(handle)
        except Exception as release_exc:
            logger.error(
                "Failed to release connection %d after %r", handle.id, exc, exc_info=release_exc
            )
            exc.add_note(f"Releasing connection {handle.id} also failed: {release_exc!r}")

    async def close(self) -> None:
        """Close the pool. Later leases fail with ``ConnectionLeaseError``.

        Connections still leased can be released afterwards; the pool
        closes them as they come back.
        """
        if self._closed:
            return
        self._closed = True
        pool = self._pool
        if pool is None:
            return
        if self.outstanding:
            logger.warning(
                "Closing %s with %d connection(s) still leased",
                self._config.display_name,
                self.outstanding,
            )
        await pool.close()
        logger.info("Closed pool for %s", self._config.display_name)
