"""Library-level setup: shared observers and global shutdown."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlcontract.database import Database
from sqlcontract.events import LifecycleEvents
from sqlcontract.models.config import ConnectionConfig

if TYPE_CHECKING:
    from sqlcontract.driver.backend import Driver

logger = logging.getLogger(__name__)


class Library:
    """Creates databases that share one set of lifecycle observers.

    Observers given here (``on_connect``, ``on_disconnect``, ``on_query``,
    ``on_error``, ``on_transaction``) apply to every database the library
    creates. ``shutdown()`` closes all of their pools so the process can
    exit without waiting for idle connections to time out.
    """

    def __init__(self, observers: Iterable[Any] = (), *, driver: Driver | None = None) -> None:
        """Initialize with init-time observers and an optional driver override."""
        self.events = LifecycleEvents(observers)
        self._driver = driver
        self._databases: list[Database] = []

    @property
    def databases(self) -> list[Database]:
        """Databases created through this library and not yet shut down."""
        return list(self._databases)

    def database(self, config: ConnectionConfig | Mapping[str, Any] | str) -> Database:
        """Create a database bound to ``config``."""
        config = ConnectionConfig.coerce(config)
        if any(db.config == config for db in self._databases):
            logger.warning(
                "Creating a second Database for %s; each instance has its own pool",
                config.display_name,
            )
        db = Database(config, events=self.events, driver=self._driver)
        self._databases.append(db)
        return db

    async def shutdown(self) -> None:
        """Close every database's pool.

        A pool that fails to close does not stop the others from closing;
        the first failure is raised once all have been attempted.
        """
        databases, self._databases = self._databases, []
        errors: list[Exception] = []
        for db in databases:
            try:
                await db.close()
            except Exception as exc:
                logger.error("Failed to close %r", db, exc_info=True)
                errors.append(exc)
        logger.info("Shut down %d database(s)", len(databases))
        if errors:
            raise errors[0]
