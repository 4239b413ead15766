"""Database: the entry point for one connection configuration."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from sqlcontract.broker import ConnectionBroker
from sqlcontract.driver import get_driver
from sqlcontract.events import LifecycleEvents
from sqlcontract.executor import QueryExecutor
from sqlcontract.models.config import ConnectionConfig
from sqlcontract.queries import QueryInterface
from sqlcontract.transaction import TransactionManager

if TYPE_CHECKING:
    from types import TracebackType

    from sqlcontract.broker import ConnectionHandle
    from sqlcontract.driver.backend import Driver
    from sqlcontract.transaction import Body, TransactionMode

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database(QueryInterface):
    """Contract-checked queries against one database.

    Each instance owns its own connection pool, created on first use.
    Any number of instances may coexist, for the same or different
    databases. Queries issued directly on the instance lease a connection
    each; use ``task``/``transaction`` to share one connection between
    several queries.
    """

    _context_name = None

    def __init__(
        self,
        config: ConnectionConfig | Mapping[str, Any] | str,
        *,
        events: LifecycleEvents | None = None,
        driver: Driver | None = None,
    ) -> None:
        """Initialize from a config object, a mapping, or a connection string."""
        self.config = ConnectionConfig.coerce(config)
        self.events = events if events is not None else LifecycleEvents()
        self.broker = ConnectionBroker(
            self.config, driver or get_driver(self.config.dialect), self.events
        )
        self._executor = QueryExecutor(self.broker, self.events)
        self._transactions = TransactionManager(self.broker, self._executor, self.events)

    def __repr__(self) -> str:
        return f"<Database {self.config.display_name}>"

    def _bound_handle(self) -> None:
        return None

    async def task(self, body: Body[T]) -> T:
        """Run ``body`` with a context whose queries share one connection."""
        return await self._transactions.run_task(body)

    async def transaction(self, body: Body[T], mode: TransactionMode | None = None) -> T:
        """Run ``body`` inside BEGIN/COMMIT on one connection.

        ``body`` receives a ``TransactionContext`` and may be a coroutine
        function. When it returns, the transaction commits and its value is
        returned; when it raises, the transaction rolls back and the
        exception propagates. Queries running concurrently inside the body
        (for example via ``asyncio.gather``) are serialized on the
        connection, but the body must await all of them before returning.
        """
        return await self._transactions.run_transaction(body, mode=mode)

    async def connect(self) -> DirectConnection:
        """Lease a connection the caller releases explicitly.

        Bypasses the ``on_connect``/``on_disconnect`` observers. Not
        calling ``release()`` leaks the connection.
        """
        handle = await self.broker.lease(direct=True)
        return DirectConnection(self, handle)

    async def close(self) -> None:
        """Close this database's pool."""
        await self.broker.close()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class DirectConnection(QueryInterface):
    """A connection leased with ``Database.connect()``.

    Usable as ``async with conn:``, which releases on exit.
    """

    _context_name = "direct"

    def __init__(self, database: Database, handle: ConnectionHandle) -> None:
        """Wrap a directly leased handle."""
        self._database = database
        self._executor = database._executor
        self.handle = handle

    @property
    def released(self) -> bool:
        return self.handle.released

    def _bound_handle(self) -> ConnectionHandle:
        self.handle.ensure_active()
        return self.handle

    async def task(self, body: Body[T]) -> T:
        """Run ``body`` on this connection."""
        return await self._database._transactions.run_task(body, handle=self._bound_handle())

    async def transaction(self, body: Body[T], mode: TransactionMode | None = None) -> T:
        """Run ``body`` in a transaction on this connection."""
        return await self._database._transactions.run_transaction(
            body, mode=mode, handle=self._bound_handle()
        )

    async def release(self) -> None:
        """Return the connection to the pool. Releasing twice raises."""
        await self._database.broker.release(self.handle)

    async def __aenter__(self) -> DirectConnection:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.handle.released:
            await self.release()
