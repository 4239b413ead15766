"""Per-result-shape query methods.

``QueryInterface`` is shared by ``Database`` (each query leases its own
connection) and by tasks, transactions and direct connections (every query
runs on the scope's one connection). The only difference between them is
the handle returned by ``_bound_handle()``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from sqlcontract.errors import FormattingError
from sqlcontract.formatting import format_call_args
from sqlcontract.models.mask import ANY, MANY, NONE, ONE, ONE_OR_NONE, Cardinality, QueryResultMask

if TYPE_CHECKING:
    from sqlcontract.broker import ConnectionHandle
    from sqlcontract.executor import QueryExecutor
    from sqlcontract.models.result import NormalizedResult, Row

T = TypeVar("T")

MaskLike = QueryResultMask | Cardinality | str | Iterable[Cardinality | str]


def _routine_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise FormattingError(f"Invalid routine name: {name!r}")
    return name.strip()


class QueryInterface:
    """Query methods, each binding a fixed result mask."""

    _executor: QueryExecutor
    _context_name: str | None = None

    def _bound_handle(self) -> ConnectionHandle | None:
        """The connection every query in this scope runs on, or None to lease per query."""
        raise NotImplementedError

    async def result(self, sql: str, mask: MaskLike, params: Any = None) -> NormalizedResult:
        """Run a query and return the tagged ``NormalizedResult``."""
        return await self._executor.execute(
            sql, params, mask, self._bound_handle(), context=self._context_name
        )

    async def query(self, sql: str, mask: MaskLike, params: Any = None) -> Any:
        """Run a query whose acceptable result shapes are given by ``mask``.

        Returns ``None``, a single row or a list of rows depending on which
        part of the mask the result matched.
        """
        return (await self.result(sql, mask, params)).value

    async def none(self, sql: str, params: Any = None) -> None:
        """Run a query that must return no rows."""
        await self.query(sql, NONE, params)

    async def one(self, sql: str, params: Any = None) -> Row:
        """Run a query that must return exactly one row."""
        return await self.query(sql, ONE, params)

    async def many(self, sql: str, params: Any = None) -> list[Row]:
        """Run a query that must return at least one row."""
        return await self.query(sql, MANY, params)

    async def one_or_none(self, sql: str, params: Any = None) -> Row | None:
        """Run a query that returns a single row or ``None``."""
        return await self.query(sql, ONE_OR_NONE, params)

    async def many_or_none(self, sql: str, params: Any = None) -> list[Row]:
        """Run a query that returns any number of rows."""
        return await self.query(sql, ANY, params)

    any = many_or_none

    async def func(self, name: str, params: Any = None, mask: MaskLike = ANY) -> Any:
        """Call a set-returning or scalar function: ``SELECT * FROM name(...)``.

        ``name`` is inserted as-is, so it may be schema-qualified.
        """
        sql = f"SELECT * FROM {_routine_name(name)}({format_call_args(params)})"
        return await self.query(sql, mask)

    async def proc(self, name: str, params: Any = None) -> None:
        """Call a stored procedure: ``CALL name(...)``, expecting no rows back."""
        sql = f"CALL {_routine_name(name)}({format_call_args(params)})"
        await self.query(sql, NONE)

    async def map(self, sql: str, params: Any, fn: Callable[[Row], T]) -> list[T]:
        """Run a query returning any number of rows and map ``fn`` over them."""
        return [fn(row) for row in await self.many_or_none(sql, params)]

    async def each(self, sql: str, params: Any, fn: Callable[[Row], object]) -> list[Row]:
        """Run a query returning any number of rows, call ``fn`` on each, return the rows."""
        rows = await self.many_or_none(sql, params)
        for row in rows:
            fn(row)
        return rows
