"""Store contract and reference stores for canonical query events."""

from __future__ import annotations

import re
import threading
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import duckdb

from .models import CanonicalQueryEvent

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class QueryStore(Protocol):
    """Persistence backend for canonical events.

    `write` may be a plain method (run in a worker thread by the sink) or a
    coroutine function (awaited directly). Implementations must tolerate
    concurrent calls; the pipeline does no locking of its own.
    """

    def write(self, event: CanonicalQueryEvent) -> None | Awaitable[None]:
        """Persist a single event."""

    def close(self) -> None:
        """Close any underlying resources."""


class InMemoryQueryStore:
    """In-memory store for tests and local debugging."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[CanonicalQueryEvent] = []

    def write(self, event: CanonicalQueryEvent) -> None:
        """Append an event (thread-safe)."""
        with self._lock:
            self._events.append(event)

    def close(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op."""

    def snapshot(self) -> Sequence[CanonicalQueryEvent]:
        """Return a point-in-time copy of all stored events."""
        with self._lock:
            return list(self._events)


@dataclass(frozen=True)
class DuckDBOptions:
    path: Path
    table: str = "query_events"


class DuckDBQueryStore:
    """DuckDB store for durable local persistence.

    Rows are what the dashboard reads back; one row per canonical event.
    """

    def __init__(self, *, path: str | Path, table: str = "query_events") -> None:
        """Create (or open) a DuckDB-backed store at the given path."""
        if not _IDENTIFIER_RE.match(table):
            raise ValueError(f"table must be a plain SQL identifier. Got: {table!r}")
        self._opts = DuckDBOptions(path=Path(path), table=table)
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self._opts.path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        create_sql = f"""
        create table if not exists {self._opts.table} (
          created_at varchar not null,
          type varchar not null,
          duration varchar not null,
          query varchar not null
        )
        """
        with self._lock:
            self._conn.execute(create_sql)

    def write(self, event: CanonicalQueryEvent) -> None:
        """Insert a single event."""
        insert_sql = f"""
        insert into {self._opts.table} (created_at, type, duration, query)
        values (?, ?, ?, ?)
        """
        with self._lock:
            self._conn.execute(insert_sql, [event.created_at, event.type, event.duration, event.query])

    def rows(self, *, limit: int = 100) -> list[dict[str, Any]]:
        """Return the most recent events in wire shape, newest first."""
        select_sql = f"""
        select created_at, type, duration, query
        from {self._opts.table}
        order by created_at desc
        limit ?
        """
        with self._lock:
            result = self._conn.execute(select_sql, [limit]).fetchall()
        return [
            {"createdAt": created_at, "type": type_, "duration": duration, "query": query}
            for created_at, type_, duration, query in result
        ]

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()
