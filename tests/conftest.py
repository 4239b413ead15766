"""Shared test fixtures."""

import asyncio

import pytest_asyncio

from sqlcontract.database import Database
from sqlcontract.models.config import ConnectionConfig, PoolSettings


class FakeConnection:
    """Scriptable driver connection that records every statement."""

    def __init__(self, driver: "FakeDriver", conn_id: int):
        self.driver = driver
        self.conn_id = conn_id
        self.in_flight = 0
        self.max_in_flight = 0

    async def _run(self, sql: str):
        self.driver.statements.append(sql)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so concurrent statements would overlap if not serialized
            await asyncio.sleep(0)
            outcome = self.driver.outcome_for(sql)
        finally:
            self.in_flight -= 1
        if isinstance(outcome, BaseException):
            raise outcome
        return [dict(row) for row in outcome]

    async def fetch(self, sql: str) -> list[dict]:
        return await self._run(sql)

    async def execute(self, sql: str) -> None:
        await self._run(sql)


class FakePool:
    """Counts acquisitions and releases; can be told to fail either."""

    def __init__(self, driver: "FakeDriver"):
        self.driver = driver
        self.acquired = 0
        self.released = 0
        self.closed = False
        self.fail_acquire: BaseException | None = None
        self.fail_release: BaseException | None = None
        self.connections: list[FakeConnection] = []

    async def acquire(self, *, timeout: float | None = None) -> FakeConnection:
        if self.fail_acquire is not None:
            raise self.fail_acquire
        self.acquired += 1
        conn = FakeConnection(self.driver, self.acquired)
        self.connections.append(conn)
        return conn

    async def release(self, connection: FakeConnection) -> None:
        if self.fail_release is not None:
            raise self.fail_release
        self.released += 1

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Driver stub: scripted responses keyed by a substring of the statement.

    Later registrations win over earlier ones. Unmatched statements return
    no rows.
    """

    def __init__(self):
        self.statements: list[str] = []
        self._responses: list[tuple[str, object]] = []
        self.pools: list[FakePool] = []

    @property
    def pool(self) -> FakePool:
        return self.pools[-1]

    def respond(
        self, pattern: str, rows: list[dict] | None = None, error: BaseException | None = None
    ):
        self._responses.append((pattern, error if error is not None else (rows or [])))

    def outcome_for(self, sql: str):
        for pattern, outcome in reversed(self._responses):
            if pattern in sql:
                return outcome
        return []

    def count(self, statement: str) -> int:
        return sum(1 for s in self.statements if s == statement)

    async def create_pool(self, config: ConnectionConfig) -> FakePool:
        pool = FakePool(self)
        self.pools.append(pool)
        return pool


class RecordingObserver:
    """Lifecycle observer that records every notification."""

    def __init__(self):
        self.connects = []
        self.disconnects = []
        self.queries = []
        self.errors = []
        self.transactions = []

    def on_connect(self, handle):
        self.connects.append(handle.id)

    def on_disconnect(self, handle):
        self.disconnects.append(handle.id)

    def on_query(self, event):
        self.queries.append(event)

    async def on_error(self, error, event):
        self.errors.append((error, event))

    def on_transaction(self, event):
        self.transactions.append(event)


@pytest_asyncio.fixture
async def driver():
    """Scriptable fake driver."""
    return FakeDriver()


@pytest_asyncio.fixture
async def db(driver):
    """Database wired to the fake driver."""
    database = Database("postgresql://app@localhost/test", driver=driver)
    yield database
    await database.close()


@pytest_asyncio.fixture
async def sqlite_db(tmp_path):
    """Database backed by a real SQLite file."""
    config = ConnectionConfig.from_url(
        f"sqlite://{tmp_path / 'test.db'}", pool=PoolSettings(min_size=1, max_size=4)
    )
    database = Database(config)
    yield database
    await database.close()
