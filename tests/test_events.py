"""Tests for lifecycle event fan-out."""

import logging

import pytest

from sqlcontract.database import Database
from sqlcontract.events import LifecycleEvents, LifecycleObserver, QueryEvent


class CountingObserver(LifecycleObserver):
    def __init__(self):
        self.queries = 0

    def on_query(self, event):
        self.queries += 1


class ExplodingObserver(LifecycleObserver):
    def on_connect(self, handle):
        raise RuntimeError("observer bug")

    async def on_query(self, event):
        raise RuntimeError("async observer bug")


@pytest.mark.asyncio
async def test_base_observer_hooks_are_noops():
    events = LifecycleEvents([LifecycleObserver()])
    await events.query(QueryEvent(query="SELECT 1", connection_id=1))


@pytest.mark.asyncio
async def test_partial_observer_objects():
    class OnlyQueries:
        def __init__(self):
            self.seen = []

        def on_query(self, event):
            self.seen.append(event.query)

    observer = OnlyQueries()
    events = LifecycleEvents([observer])
    await events.query(QueryEvent(query="SELECT 1", connection_id=1))
    await events.error(RuntimeError("x"), QueryEvent(query="SELECT 1", connection_id=1))
    assert observer.seen == ["SELECT 1"]


@pytest.mark.asyncio
async def test_async_hooks_are_awaited():
    seen = []

    class AsyncObserver:
        async def on_query(self, event):
            seen.append(event.connection_id)

    await LifecycleEvents([AsyncObserver()]).query(QueryEvent(query="SELECT 1", connection_id=9))
    assert seen == [9]


@pytest.mark.asyncio
async def test_failing_observer_does_not_break_queries(driver, caplog):
    counting = CountingObserver()
    db = Database(
        "postgresql://localhost/x",
        driver=driver,
        events=LifecycleEvents([ExplodingObserver(), counting]),
    )
    driver.respond("users", rows=[{"id": 1}])

    with caplog.at_level(logging.WARNING, logger="sqlcontract.events"):
        assert await db.one("SELECT * FROM users") == {"id": 1}

    assert counting.queries == 1
    assert "on_connect" in caplog.text
    assert "on_query" in caplog.text
    assert driver.pool.released == 1
    await db.close()


def test_subscribe_and_unsubscribe():
    events = LifecycleEvents()
    observer = CountingObserver()
    unsubscribe = events.subscribe(observer)
    assert events.observers == [observer]
    unsubscribe()
    unsubscribe()
    assert events.observers == []
