"""Handler interface and shared run loop.

A handler is the per-source plug-in point. It subscribes to one data-access
library's instrumentation surface, receives that library's raw payloads through
a `SourceChannel`, and turns each non-ignored payload into a
`CanonicalQueryEvent` handed to the ingestion sink.

Concrete handlers only describe their source:
- `install()` / `uninstall()` wire the library hook to `self.channel.publish`.
- `should_ignore()` filters administrative statements.
- `render_query()` interpolates and formats the query text.
- `elapsed_ms()` reads or computes the execution time.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from ..channel import Captured, SourceChannel
from ..errors import InterpolationError
from ..models import CanonicalQueryEvent, QueryType

logger = logging.getLogger(__name__)

P = TypeVar("P")

Accept = Callable[[CanonicalQueryEvent], Awaitable[bool]]

# BEGIN / COMMIT / ROLLBACK / SAVEPOINT ... carry no diagnostic value.
_TRANSACTION_MARKER_RE = re.compile(
    r"^\s*(?:BEGIN|START\s+TRANSACTION|COMMIT|END|ROLLBACK|SAVEPOINT|RELEASE)\b[^;]*;?\s*$",
    re.IGNORECASE,
)


def is_transaction_marker(sql: str) -> bool:
    """Return True for transaction boundary statements."""
    return bool(_TRANSACTION_MARKER_RE.match(sql))


def preview(text: str, limit: int) -> str:
    """Collapse whitespace and truncate text for log messages."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


@runtime_checkable
class Handler(Protocol):
    """What the watcher needs from a handler."""

    name: str

    def open(self) -> None:
        """Bind to the running loop and install the source hook."""

    async def run(self, accept: Accept) -> None:
        """Convert source payloads into `accept` calls until closed."""

    async def close(self) -> None:
        """Uninstall the source hook and let `run` drain and return."""


class QueryHandler(ABC, Generic[P]):
    """Base class implementing the channel-driven run loop."""

    query_type: QueryType = "sql"

    def __init__(self, *, name: str, max_queue_size: int = 1000, preview_chars: int = 200) -> None:
        self.name = name
        self.channel: SourceChannel[P] = SourceChannel(name=name, max_size=max_queue_size)
        self._preview_chars = preview_chars
        self._installed = False
        self._closed = False

        self._processed = 0
        self._ignored = 0
        self._failed = 0

    @abstractmethod
    def install(self) -> None:
        """Subscribe to the source's instrumentation hook."""

    @abstractmethod
    def uninstall(self) -> None:
        """Unsubscribe from the source's instrumentation hook."""

    @abstractmethod
    def should_ignore(self, payload: P) -> bool:
        """Return True for payloads that must never become events."""

    @abstractmethod
    def render_query(self, payload: P) -> str:
        """Return display-ready query text (interpolated and formatted)."""

    @abstractmethod
    def elapsed_ms(self, payload: P) -> float:
        """Return the execution time in milliseconds."""

    def describe(self, payload: P) -> str:
        """Raw query text used in log messages about this payload."""
        return repr(payload)

    def open(self) -> None:
        """Bind the channel to the running loop and install the hook.

        Does nothing once the handler has been closed.
        """
        if self._installed or self._closed:
            return
        self.channel.bind(asyncio.get_running_loop())
        self.install()
        self._installed = True

    async def close(self) -> None:
        """Stop listening; payloads already captured are still processed."""
        self._closed = True
        if self._installed:
            self.uninstall()
            self._installed = False
        await self.channel.close()

    def to_event(self, captured: Captured[P]) -> CanonicalQueryEvent:
        """Build the canonical event for one captured payload."""
        payload = captured.payload
        return CanonicalQueryEvent.build(
            query=self.render_query(payload),
            elapsed_ms=self.elapsed_ms(payload),
            type=self.query_type,
            captured_at=captured.captured_at,
        )

    async def run(self, accept: Accept) -> None:
        """Consume payloads in delivery order until the channel is closed.

        `open()` must have been called first.
        """
        while True:
            captured = await self.channel.get()
            if captured is None:
                return
            await self._handle(captured, accept)

    async def _handle(self, captured: Captured[P], accept: Accept) -> None:
        payload = captured.payload
        try:
            if self.should_ignore(payload):
                self._ignored += 1
                return
            event = self.to_event(captured)
        except InterpolationError as exc:
            self._failed += 1
            logger.warning(
                "%s: dropped query (%s): %s",
                self.name,
                exc,
                preview(self.describe(payload), self._preview_chars),
            )
            return
        except Exception:  # noqa: BLE001 - one malformed payload must not stop the handler
            self._failed += 1
            logger.exception(
                "%s: dropped malformed payload: %s",
                self.name,
                preview(repr(payload), self._preview_chars),
            )
            return

        self._processed += 1
        try:
            await accept(event)
        except Exception:  # noqa: BLE001 - a failing consumer must not stop the source
            self._failed += 1
            logger.exception(
                "%s: ingestion callback failed for query: %s",
                self.name,
                preview(event.query, self._preview_chars),
            )

    def stats(self) -> dict[str, Any]:
        """Return counters for this handler."""
        return {
            "name": self.name,
            "processed": self._processed,
            "ignored": self._ignored,
            "failed": self._failed,
            "dropped": self.channel.dropped,
        }
