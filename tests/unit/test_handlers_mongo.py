from __future__ import annotations

import json
import logging
from types import SimpleNamespace

import pytest

from config import WatcherConfig
from querywatch import InMemoryQueryStore, QueryWatcher
from querywatch.handlers import MongoCommandHandler


def _started(request_id: int, command_name: str, command: dict) -> SimpleNamespace:
    return SimpleNamespace(request_id=request_id, command_name=command_name, database_name="app", command=command)


def _finished(request_id: int, duration_micros: int) -> SimpleNamespace:
    return SimpleNamespace(request_id=request_id, duration_micros=duration_micros)


@pytest.mark.asyncio
async def test_commands_become_mongodb_events() -> None:
    handler = MongoCommandHandler()
    store = InMemoryQueryStore()

    async with QueryWatcher(WatcherConfig(), handlers=[handler], store=store):
        handler.started(
            _started(
                1,
                "find",
                {"find": "users", "filter": {"age": {"$gt": 30}}, "lsid": {"id": "x"}, "$db": "app"},
            )
        )
        handler.started(_started(2, "ping", {"ping": 1}))
        handler.succeeded(_finished(2, 50))
        handler.succeeded(_finished(1, 1500))
        handler.failed(_finished(3, 10))

    events = store.snapshot()
    assert len(events) == 1
    event = events[0]
    expected_body = json.dumps({"filter": {"age": {"$gt": 30}}}, indent=2, sort_keys=True)
    assert event.query == f"db.users.find({expected_body})"
    assert event.duration == "1.5 ms"
    assert event.type == "mongodb"
    assert handler.stats()["ignored"] == 1
    assert handler.stats()["failed"] == 0


@pytest.mark.asyncio
async def test_failed_commands_are_still_recorded() -> None:
    handler = MongoCommandHandler()
    store = InMemoryQueryStore()

    async with QueryWatcher(WatcherConfig(), handlers=[handler], store=store):
        handler.started(_started(7, "insert", {"insert": "logs", "documents": [{"msg": "hi"}]}))
        handler.failed(_finished(7, 2000))

    assert [e.duration for e in store.snapshot()] == ["2.0 ms"]
    assert store.snapshot()[0].query.startswith("db.logs.insert(")


def test_commands_seen_before_start_are_ignored() -> None:
    handler = MongoCommandHandler()
    handler.started(_started(1, "find", {"find": "users"}))
    handler.succeeded(_finished(1, 10))
    assert handler.stats()["dropped"] == 0
    assert handler.stats()["processed"] == 0


@pytest.mark.asyncio
async def test_handshake_commands_are_counted_as_ignored(caplog: pytest.LogCaptureFixture) -> None:
    handler = MongoCommandHandler(ignored_commands={"ping", "endSessions"})
    store = InMemoryQueryStore()

    with caplog.at_level(logging.ERROR, logger="querywatch.handlers.base"):
        async with QueryWatcher(WatcherConfig(), handlers=[handler], store=store):
            handler.started(_started(1, "ping", {"ping": 1}))
            handler.succeeded(_finished(1, 40))
            handler.started(_started(2, "endSessions", {"endSessions": [{"id": "x"}]}))
            handler.succeeded(_finished(2, 40))

    assert store.snapshot() == []
    assert handler.stats()["ignored"] == 2
    assert handler.stats()["failed"] == 0
    assert [r for r in caplog.records if r.name == "querywatch.handlers.base"] == []
