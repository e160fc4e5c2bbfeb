from __future__ import annotations

import asyncio
import logging

import pytest

from config import WatcherConfig
from querywatch import CanonicalQueryEvent, ConfigurationError, InMemoryQueryStore, QueryWatcher
from querywatch.handlers import LoggingHandler
from querywatch.models import utc_now


@pytest.mark.asyncio
async def test_positional_statement_becomes_canonical_event() -> None:
    handler = LoggingHandler("tests.driver_a")
    store = InMemoryQueryStore()
    watcher = QueryWatcher(WatcherConfig(), handlers=[handler], store=store)
    await watcher.start()

    before = utc_now()
    logging.getLogger("tests.driver_a").debug(
        "query",
        extra={"sql": "insert into user (name) values (?)", "params": ["John Doe"], "elapsed_ms": 12.34},
    )
    await watcher.aclose()
    after = utc_now()

    events = store.snapshot()
    assert len(events) == 1
    event = events[0]
    assert event.query == "INSERT INTO user (name)\nVALUES ('John Doe')"
    assert event.duration == "12.3 ms"
    assert event.type == "sql"
    assert before <= event.captured_at <= after


@pytest.mark.asyncio
async def test_transaction_marker_never_reaches_accept() -> None:
    handler = LoggingHandler("tests.driver_b")
    accepted: list[CanonicalQueryEvent] = []

    async def accept(event: CanonicalQueryEvent) -> bool:
        accepted.append(event)
        return True

    handler.open()
    task = asyncio.create_task(handler.run(accept))
    driver = logging.getLogger("tests.driver_b")
    driver.debug("query", extra={"sql": "COMMIT", "params": [], "elapsed_ms": 0.2})
    driver.debug("query", extra={"sql": "BEGIN;", "elapsed_ms": 0.1})
    await handler.close()
    await task

    assert accepted == []
    assert handler.stats()["ignored"] == 2


@pytest.mark.asyncio
async def test_interpolation_failure_drops_one_event_and_keeps_running(caplog: pytest.LogCaptureFixture) -> None:
    handler = LoggingHandler("tests.driver_c", preview_chars=20)
    store = InMemoryQueryStore()
    watcher = QueryWatcher(WatcherConfig(), handlers=[handler], store=store)
    await watcher.start()

    driver = logging.getLogger("tests.driver_c")
    with caplog.at_level(logging.WARNING, logger="querywatch.handlers.base"):
        driver.debug("query", extra={"sql": "select * from accounts where a = ? and b = ?", "params": [1], "elapsed_ms": 1})
        driver.debug("query", extra={"sql": "select ?", "params": [2], "elapsed_ms": 1})
        await watcher.aclose()

    assert [e.query for e in store.snapshot()] == ["SELECT 2"]
    assert handler.stats()["failed"] == 1
    warnings = [r.getMessage() for r in caplog.records if r.name == "querywatch.handlers.base"]
    assert len(warnings) == 1
    assert "tests.driver_c" in warnings[0]
    assert "select * from accoun..." in warnings[0]


@pytest.mark.asyncio
async def test_records_without_statement_are_skipped_and_level_is_restored() -> None:
    driver = logging.getLogger("tests.driver_d")
    driver.setLevel(logging.WARNING)
    handler = LoggingHandler("tests.driver_d", sql_attr="statement", params_attr="bindings", elapsed_attr="ms")
    store = InMemoryQueryStore()

    async with QueryWatcher(WatcherConfig(), handlers=[handler], store=store):
        assert driver.level == logging.DEBUG
        driver.debug("connection opened")
        driver.debug("query", extra={"statement": "select :id", "bindings": {"id": 5}, "ms": 2})

    assert driver.level == logging.WARNING
    assert driver.handlers == []
    assert [e.query for e in store.snapshot()] == ["SELECT 5"]
    assert [e.duration for e in store.snapshot()] == ["2.0 ms"]


def test_logger_name_is_required() -> None:
    with pytest.raises(ConfigurationError):
        LoggingHandler("")


@pytest.mark.asyncio
async def test_failing_accept_callback_does_not_stop_the_handler(caplog: pytest.LogCaptureFixture) -> None:
    handler = LoggingHandler("tests.driver_e")
    accepted: list[str] = []

    async def accept(event: CanonicalQueryEvent) -> bool:
        if not accepted and event.query == "SELECT 1":
            accepted.append("raised")
            raise RuntimeError("consumer unavailable")
        accepted.append(event.query)
        return True

    handler.open()
    task = asyncio.create_task(handler.run(accept))
    driver = logging.getLogger("tests.driver_e")
    with caplog.at_level(logging.ERROR, logger="querywatch.handlers.base"):
        for n in (1, 2, 3):
            driver.debug("query", extra={"sql": "select ?", "params": [n], "elapsed_ms": 1})
        await handler.close()
        await task

    assert task.exception() is None
    assert accepted == ["raised", "SELECT 2", "SELECT 3"]
    assert handler.stats()["failed"] == 1
    errors = [r for r in caplog.records if r.name == "querywatch.handlers.base"]
    assert len(errors) == 1
    assert "tests.driver_e" in errors[0].getMessage()
