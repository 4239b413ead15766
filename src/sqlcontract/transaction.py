"""Tasks and transactions: several queries sharing one connection.

A task holds one leased connection for the duration of a callback. A
transaction is a task wrapped in BEGIN/COMMIT, with ROLLBACK on any
failure. Transactions started inside a transaction become savepoints.

State machine of a transaction context::

    ACTIVE -> COMMITTING -> CLOSED        (body and COMMIT succeeded)
    ACTIVE -> ROLLING_BACK -> CLOSED      (BEGIN, body or COMMIT failed)
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ConfigDict

from sqlcontract.errors import RollbackError, TransactionClosedError
from sqlcontract.events import TransactionEvent
from sqlcontract.queries import QueryInterface

if TYPE_CHECKING:
    from sqlcontract.broker import ConnectionBroker, ConnectionHandle
    from sqlcontract.events import LifecycleEvents
    from sqlcontract.executor import QueryExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")

Body = Callable[["TaskContext"], Awaitable[T] | T]


class TransactionState(StrEnum):
    """Lifecycle of one transaction."""

    ACTIVE = "active"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    CLOSED = "closed"


class IsolationLevel(StrEnum):
    """Transaction isolation levels."""

    SERIALIZABLE = "serializable"
    REPEATABLE_READ = "repeatable read"
    READ_COMMITTED = "read committed"
    READ_UNCOMMITTED = "read uncommitted"


class TransactionMode(BaseModel):
    """Options rendered into the BEGIN statement of a top-level transaction."""

    model_config = ConfigDict(frozen=True)

    isolation_level: IsolationLevel | None = None
    read_only: bool | None = None
    deferrable: bool | None = None

    def begin_statement(self) -> str:
        """Render ``BEGIN`` with the configured modes."""
        modes = []
        if self.isolation_level is not None:
            modes.append(f"ISOLATION LEVEL {self.isolation_level.value.upper()}")
        if self.read_only is not None:
            modes.append("READ ONLY" if self.read_only else "READ WRITE")
        if self.deferrable is not None:
            modes.append("DEFERRABLE" if self.deferrable else "NOT DEFERRABLE")
        if not modes:
            return "BEGIN"
        return "BEGIN " + ", ".join(modes)


async def _invoke(body: Body[T], ctx: TaskContext) -> T:
    # A body may be a coroutine function or return a plain value; a body
    # that raises before returning anything fails the same way either way
    result = body(ctx)
    if inspect.isawaitable(result):
        result = await result
    return result


class TaskContext(QueryInterface):
    """Query methods bound to one connection for the length of a callback.

    ``tx_level`` counts the transactions this context sits inside; it is
    0 for a plain task.
    """

    _context_name = "task"

    def __init__(
        self, manager: TransactionManager, handle: ConnectionHandle, *, tx_level: int = 0
    ) -> None:
        """Bind the context to a leased connection."""
        self._manager = manager
        self._executor = manager.executor
        self._handle = handle
        self.tx_level = tx_level
        self._closed = False

    @property
    def handle(self) -> ConnectionHandle:
        """The connection all queries in this context run on."""
        return self._handle

    @property
    def closed(self) -> bool:
        """Whether the callback has finished."""
        return self._closed

    @property
    def in_transaction(self) -> bool:
        """Whether queries run inside a transaction."""
        return self.tx_level > 0

    def _bound_handle(self) -> ConnectionHandle:
        if self._closed:
            raise TransactionClosedError(f"Cannot query through a finished {self._context_name}")
        return self._handle

    def _close(self) -> None:
        self._closed = True

    async def task(self, body: Body[T]) -> T:
        """Run ``body`` on this context's connection."""
        self._bound_handle()
        return await self._manager.run_task(body, handle=self._handle, tx_level=self.tx_level)

    async def transaction(self, body: Body[T], mode: TransactionMode | None = None) -> T:
        """Run ``body`` in a transaction, or a savepoint if already in one."""
        self._bound_handle()
        return await self._manager.run_transaction(
            body, mode=mode, handle=self._handle, tx_level=self.tx_level
        )


class TransactionContext(TaskContext):
    """A task context inside BEGIN/COMMIT (or SAVEPOINT/RELEASE when nested)."""

    _context_name = "transaction"

    def __init__(
        self,
        manager: TransactionManager,
        handle: ConnectionHandle,
        *,
        tx_level: int = 1,
        mode: TransactionMode | None = None,
    ) -> None:
        """Bind the transaction to a leased connection; it starts ``ACTIVE``."""
        super().__init__(manager, handle, tx_level=tx_level)
        self.mode = mode
        self._state = TransactionState.ACTIVE

    @property
    def state(self) -> TransactionState:
        """Current lifecycle state."""
        return self._state

    @property
    def savepoint(self) -> str | None:
        """Savepoint name for a nested transaction, None at top level."""
        return f"sp_{self.tx_level - 1}" if self.tx_level > 1 else None

    def _transition(self, state: TransactionState) -> None:
        logger.debug(
            "Transaction on connection %d (level %d): %s -> %s",
            self._handle.id,
            self.tx_level,
            self._state,
            state,
        )
        self._state = state

    def _close(self) -> None:
        super()._close()
        self._transition(TransactionState.CLOSED)

    def begin_statement(self) -> str:
        if self.savepoint:
            return f"SAVEPOINT {self.savepoint}"
        return self.mode.begin_statement() if self.mode else "BEGIN"

    def commit_statement(self) -> str:
        return f"RELEASE SAVEPOINT {self.savepoint}" if self.savepoint else "COMMIT"

    def rollback_statement(self) -> str:
        return f"ROLLBACK TO SAVEPOINT {self.savepoint}" if self.savepoint else "ROLLBACK"


class TransactionManager:
    """Runs tasks and transactions for one database."""

    def __init__(
        self, broker: ConnectionBroker, executor: QueryExecutor, events: LifecycleEvents
    ) -> None:
        """Initialize with the database's broker, executor and event fan-out."""
        self._broker = broker
        self.executor = executor
        self._events = events

    async def run_task(
        self, body: Body[T], *, handle: ConnectionHandle | None = None, tx_level: int = 0
    ) -> T:
        """Run ``body`` with a context bound to one connection.

        Leases (and finally releases) a connection unless ``handle`` is
        given by an enclosing context.
        """
        leased = handle is None
        if handle is None:
            handle = await self._broker.lease()
        ctx = TaskContext(self, handle, tx_level=tx_level)
        try:
            result = await _invoke(body, ctx)
        except BaseException as exc:
            ctx._close()
            if leased:
                await self._broker.release_after(handle, exc)
            raise
        ctx._close()
        if leased:
            await self._broker.release(handle)
        return result

    async def run_transaction(
        self,
        body: Body[T],
        *,
        mode: TransactionMode | None = None,
        handle: ConnectionHandle | None = None,
        tx_level: int = 0,
    ) -> T:
        """Run ``body`` inside a transaction.

        On success the transaction commits and ``body``'s value is
        returned. On any failure (BEGIN, the body, or COMMIT) it rolls back
        and the original exception propagates; if ROLLBACK fails as well,
        that failure is attached to the original as ``rollback_error``.
        """
        leased = handle is None
        if handle is None:
            handle = await self._broker.lease()
        ctx = TransactionContext(self, handle, tx_level=tx_level + 1, mode=mode)
        if mode is not None and ctx.savepoint:
            logger.warning("Transaction mode %s ignored for nested transaction", mode)

        started = time.monotonic()
        error: BaseException | None = None
        try:
            await self._events.transaction(
                TransactionEvent(connection_id=handle.id, level=ctx.tx_level, state=ctx.state)
            )
            try:
                await self.executor.execute_raw(
                    ctx.begin_statement(), handle, context="transaction"
                )
                result = await _invoke(body, ctx)
                ctx._transition(TransactionState.COMMITTING)
                await self.executor.execute_raw(
                    ctx.commit_statement(), handle, context="transaction"
                )
            except BaseException as exc:
                await self._rollback(ctx, exc)
                raise
            return result
        except BaseException as exc:
            error = exc
            raise
        finally:
            ctx._close()
            if leased:
                if error is None:
                    await self._broker.release(handle)
                else:
                    await self._broker.release_after(handle, error)
            await self._events.transaction(
                TransactionEvent(
                    connection_id=handle.id,
                    level=ctx.tx_level,
                    state=ctx.state,
                    finished=True,
                    duration=time.monotonic() - started,
                    error=error,
                )
            )

    async def _rollback(self, ctx: TransactionContext, exc: BaseException) -> None:
        ctx._transition(TransactionState.ROLLING_BACK)
        try:
            await self.executor.execute_raw(
                ctx.rollback_statement(), ctx.handle, context="transaction"
            )
        except Exception as rollback_exc:
            logger.error(
                "ROLLBACK failed on connection %d after %r",
                ctx.handle.id,
                exc,
                exc_info=rollback_exc,
            )
            rollback_error = RollbackError(f"ROLLBACK failed: {rollback_exc}", original=exc)
            rollback_error.__cause__ = rollback_exc
            exc.rollback_error = rollback_error  # type: ignore[attr-defined]
            exc.add_note(f"ROLLBACK also failed: {rollback_exc}")
