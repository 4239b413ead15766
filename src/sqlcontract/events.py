"""Lifecycle notifications for monitoring.

Observers are a side channel: they see connections come and go, queries
start, errors happen and transactions finish, but nothing they do (or fail
to do) changes the outcome of a query. A failing observer is logged and
skipped.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlcontract.broker import ConnectionHandle
    from sqlcontract.transaction import TransactionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryEvent:
    """A statement about to be sent to the driver."""

    query: str
    connection_id: int
    context: str | None = None


@dataclass(frozen=True)
class TransactionEvent:
    """A transaction starting (``finished=False``) or ending."""

    connection_id: int
    level: int
    state: TransactionState
    finished: bool = False
    duration: float | None = None
    error: BaseException | None = None


class LifecycleObserver:
    """Base class for observers; override only the hooks you need.

    Hooks may be plain or ``async`` methods. Any object with methods of
    the same names can be subscribed; subclassing is optional.
    """

    def on_connect(self, handle: ConnectionHandle) -> Any:
        """A pool-managed connection was leased."""

    def on_disconnect(self, handle: ConnectionHandle) -> Any:
        """A pool-managed connection is being returned to the pool."""

    def on_query(self, event: QueryEvent) -> Any:
        """A statement is about to run."""

    def on_error(self, error: BaseException, event: QueryEvent) -> Any:
        """A statement failed, or its result broke the mask."""

    def on_transaction(self, event: TransactionEvent) -> Any:
        """A transaction started or finished."""


class LifecycleEvents:
    """Fan-out of lifecycle notifications to subscribed observers."""

    def __init__(self, observers: Iterable[Any] = ()) -> None:
        """Initialize with an optional set of observers."""
        self._observers: list[Any] = list(observers)

    @property
    def observers(self) -> list[Any]:
        """Currently subscribed observers."""
        return list(self._observers)

    def subscribe(self, observer: Any) -> Callable[[], None]:
        """Add an observer; returns a callable that removes it again."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def connect(self, handle: ConnectionHandle) -> None:
        await self._emit("on_connect", handle)

    async def disconnect(self, handle: ConnectionHandle) -> None:
        await self._emit("on_disconnect", handle)

    async def query(self, event: QueryEvent) -> None:
        await self._emit("on_query", event)

    async def error(self, error: BaseException, event: QueryEvent) -> None:
        await self._emit("on_error", error, event)

    async def transaction(self, event: TransactionEvent) -> None:
        await self._emit("on_transaction", event)

    async def _emit(self, hook: str, *args: Any) -> None:
        for observer in list(self._observers):
            handler = getattr(observer, hook, None)
            if handler is None:
                continue
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning("Observer %r failed in %s", observer, hook, exc_info=True)
