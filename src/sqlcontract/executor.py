"""Query executor: runs one statement from mask check to released connection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlcontract.contract import validate
from sqlcontract.errors import DriverError, QueryResultError, SQLContractError
from sqlcontract.events import QueryEvent
from sqlcontract.formatting import format_query
from sqlcontract.models.mask import QueryResultMask

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlcontract.broker import ConnectionBroker, ConnectionHandle
    from sqlcontract.events import LifecycleEvents
    from sqlcontract.models.mask import Cardinality
    from sqlcontract.models.result import NormalizedResult, Row

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Executes statements for one database.

    ``handle`` is the capability that decides connection ownership: with
    no handle the executor leases a connection for the statement and
    releases it before returning or raising; with a handle (a task,
    transaction or direct connection) it neither leases nor releases.
    """

    def __init__(self, broker: ConnectionBroker, events: LifecycleEvents) -> None:
        """Initialize with the database's broker and event fan-out."""
        self._broker = broker
        self._events = events

    async def execute(
        self,
        sql: str,
        params: Any,
        mask: QueryResultMask | Cardinality | str | Iterable[Cardinality | str],
        handle: ConnectionHandle | None = None,
        *,
        context: str | None = None,
    ) -> NormalizedResult:
        """Format, run and validate one query.

        The mask is checked and the parameters formatted before any
        connection is leased, so a bad mask or parameter never reaches
        the driver.
        """
        mask = QueryResultMask.coerce(mask)
        query = format_query(sql, params)

        if handle is not None:
            return await self._run(query, mask, handle, context)

        handle = await self._broker.lease()
        try:
            result = await self._run(query, mask, handle, context)
        except BaseException as exc:
            await self._broker.release_after(handle, exc)
            raise
        await self._broker.release(handle)
        return result

    async def execute_raw(
        self, sql: str, handle: ConnectionHandle, *, context: str | None = None
    ) -> None:
        """Run a control statement (BEGIN, COMMIT, SAVEPOINT, ...) on ``handle``."""
        event = QueryEvent(query=sql, connection_id=handle.id, context=context)
        await self._events.query(event)
        try:
            await handle.execute(sql)
        except SQLContractError as exc:
            await self._events.error(exc, event)
            raise
        except Exception as exc:
            error = DriverError(str(exc), query=sql)
            await self._events.error(error, event)
            raise error from exc

    async def _run(
        self,
        query: str,
        mask: QueryResultMask,
        handle: ConnectionHandle,
        context: str | None,
    ) -> NormalizedResult:
        event = QueryEvent(query=query, connection_id=handle.id, context=context)
        await self._events.query(event)
        logger.debug("Executing on connection %d [%s]: %s", handle.id, mask, query)

        try:
            rows: list[Row] = await handle.fetch(query)
        except SQLContractError as exc:
            await self._events.error(exc, event)
            raise
        except Exception as exc:
            error = DriverError(str(exc), query=query)
            await self._events.error(error, event)
            raise error from exc

        try:
            return validate(rows, mask, query=query)
        except QueryResultError as exc:
            await self._events.error(exc, event)
            raise
