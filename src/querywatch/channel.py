"""Per-source notification channel.

Instrumentation hooks are synchronous and may fire on any thread; handlers are
asyncio tasks. A `SourceChannel` bridges the two:

- `publish()` never blocks the data-access library: it stamps the capture time
  and offers the payload to a bounded queue, dropping it when the queue is full.
- `get()` hands payloads to the single consuming handler in publish order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from .models import utc_now

P = TypeVar("P")


@dataclass(frozen=True)
class Captured(Generic[P]):
    """A raw payload plus the moment the source handed it over."""

    payload: P
    captured_at: datetime


class SourceChannel(Generic[P]):
    """Bounded single-producer/single-consumer queue for one source."""

    def __init__(self, *, name: str, max_size: int = 1000) -> None:
        """Create an unbound channel.

        Args:
            name: Source name (used in stats and task names).
            max_size: Bound for in-memory buffering; payloads are dropped when
                full so the source is never slowed down.
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be > 0. Got: {max_size}")
        self.name = name
        self._max_size = max_size
        self._queue: asyncio.Queue[Captured[P] | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """Number of payloads discarded (full, unbound or closed channel)."""
        return self._dropped

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the channel to the loop its consumer runs on."""
        if self._loop is loop:
            return
        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self._max_size)
        self._closed = False

    def publish(self, payload: P) -> None:
        """Offer a payload from any thread (non-blocking)."""
        captured = Captured(payload=payload, captured_at=utc_now())
        loop = self._loop
        if loop is None or self._closed:
            self._dropped += 1
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._offer(captured)
            return
        try:
            loop.call_soon_threadsafe(self._offer, captured)
        except RuntimeError:
            # Loop already closed.
            self._dropped += 1

    def _offer(self, captured: Captured[P]) -> None:
        if self._closed or self._queue is None:
            self._dropped += 1
            return
        try:
            self._queue.put_nowait(captured)
        except asyncio.QueueFull:
            self._dropped += 1

    async def get(self) -> Captured[P] | None:
        """Return the next payload, or `None` once the channel is closed and drained."""
        if self._queue is None:
            raise RuntimeError(f"channel {self.name!r} is not bound to an event loop")
        item = await self._queue.get()
        self._queue.task_done()
        if item is None:
            # Keep the end marker for any later reader.
            self._queue.put_nowait(None)
        return item

    async def close(self) -> None:
        """Stop accepting payloads; pending ones are still delivered before `None`.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        if self._queue is not None:
            await self._queue.put(None)
