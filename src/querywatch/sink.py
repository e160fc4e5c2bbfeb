"""Ingestion sink: the single entry point shared by every handler."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any

from .errors import IngestionError
from .models import CanonicalQueryEvent, utc_now
from .stores import QueryStore

logger = logging.getLogger(__name__)


class IngestionSink:
    """Forwards canonical events to a store, one awaited write per call.

    The sink performs no transformation, imposes no ordering across callers and
    never retries. A failed write is logged and reported as `False`; it never
    propagates back into a handler (and so never into a data-access library).
    """

    def __init__(self, store: QueryStore) -> None:
        """Create a sink writing to `store`.

        Sync stores are run in a worker thread to keep the event loop unblocked;
        stores with a coroutine `write` are awaited directly.
        """
        self._store = store
        self._async_store = inspect.iscoroutinefunction(store.write)
        self._closed = False

        self._persisted = 0
        # Degradation tracking: counts and time window.
        self._write_failures = 0
        self._first_failure_at: datetime | None = None
        self._last_failure_at: datetime | None = None

    async def accept(self, event: CanonicalQueryEvent) -> bool:
        """Persist one event; return whether the store accepted it."""
        if self._closed:
            return False
        try:
            await self._write(event)
        except Exception as exc:  # noqa: BLE001 - observability must not break the host
            self._report(IngestionError(f"store write failed: {exc}"), exc, event)
            return False
        self._persisted += 1
        return True

    async def _write(self, event: CanonicalQueryEvent) -> None:
        if self._async_store:
            await self._store.write(event)  # type: ignore[misc]
        else:
            await asyncio.to_thread(self._store.write, event)

    def _report(self, error: IngestionError, cause: BaseException, event: CanonicalQueryEvent) -> None:
        now = utc_now()
        self._write_failures += 1
        self._first_failure_at = self._first_failure_at or now
        self._last_failure_at = now
        error.__cause__ = cause
        logger.error("%s (type=%s, createdAt=%s)", error, event.type, event.created_at, exc_info=error)

    async def aclose(self) -> None:
        """Close the underlying store.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._store.close)

    def degraded_status(self) -> dict[str, Any]:
        """Return a minimal degraded-status snapshot."""
        return {
            "persisted": self._persisted,
            "write_failures": self._write_failures,
            "first_failure_at": self._first_failure_at,
            "last_failure_at": self._last_failure_at,
        }
