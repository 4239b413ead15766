"""Driver protocols: the thin layer between the library and async database drivers.

The library programs against these protocols. Each driver (asyncpg,
aiosqlite, ...) provides a concrete implementation. Statements reach the
driver fully formatted; drivers never see parameters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlcontract.models.config import ConnectionConfig
    from sqlcontract.models.result import Row


@runtime_checkable
class Record(Protocol):
    """A native driver row supporting named access."""

    def __getitem__(self, key: str) -> Any:
        """Get a column value by name."""
        ...

    def keys(self) -> Any:
        """Return column names."""
        ...


@runtime_checkable
class Connection(Protocol):
    """One physical connection, leased from a pool."""

    async def fetch(self, sql: str) -> list[Row]:
        """Run a statement and return its rows (empty for commands)."""
        ...

    async def execute(self, sql: str) -> None:
        """Run a statement and discard any result (BEGIN, COMMIT, ...)."""
        ...


@runtime_checkable
class Pool(Protocol):
    """A bounded set of connections."""

    async def acquire(self, *, timeout: float | None = None) -> Connection:
        """Lease a connection, waiting at most ``timeout`` seconds when given."""
        ...

    async def release(self, connection: Connection) -> None:
        """Return a leased connection to the pool."""
        ...

    async def close(self) -> None:
        """Close every connection in the pool."""
        ...


@runtime_checkable
class Driver(Protocol):
    """Creates pools for a connection configuration."""

    async def create_pool(self, config: ConnectionConfig) -> Pool:
        """Open a pool for ``config``."""
        ...


def record_to_row(record: Record) -> Row:
    """Convert a native driver record to a plain dict, keeping column order."""
    return {key: record[key] for key in record.keys()}
