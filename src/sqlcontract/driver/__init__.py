"""Driver adapters and selection."""

from sqlcontract.driver.backend import Connection, Driver, Pool, Record
from sqlcontract.driver.postgres import PostgresDriver
from sqlcontract.driver.sqlite import SQLiteDriver
from sqlcontract.models.config import Dialect


def get_driver(dialect: Dialect) -> Driver:
    """Return the driver that serves ``dialect``."""
    if dialect is Dialect.SQLITE:
        return SQLiteDriver()
    return PostgresDriver()


__all__ = [
    "Connection",
    "Driver",
    "Pool",
    "PostgresDriver",
    "Record",
    "SQLiteDriver",
    "get_driver",
]
