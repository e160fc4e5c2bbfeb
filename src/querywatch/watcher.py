"""Query watcher lifecycle.

The watcher validates the setup, starts one task per handler feeding the shared
ingestion sink, and drains everything in order on close.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from .errors import ConfigurationError
from .handlers.base import Handler
from .sink import IngestionSink
from .stores import QueryStore

logger = logging.getLogger(__name__)


class WatcherSettings(Protocol):
    """The part of the watcher configuration the lifecycle needs."""

    enabled: bool


class QueryWatcher:
    """Runs handlers concurrently on the current event loop.

    Handlers never wait on one another; each one preserves its own source's
    order. Setup errors raise `ConfigurationError` before anything starts.
    """

    def __init__(self, config: WatcherSettings, *, handlers: Sequence[Handler], store: QueryStore | None) -> None:
        """Validate the setup.

        Raises:
            ConfigurationError: enabled without handlers or store, duplicate
                handler names, or objects that are not handlers.
        """
        self._config = config
        self._handlers = list(handlers)
        if config.enabled:
            if not self._handlers:
                raise ConfigurationError("query watcher is enabled but no handler was provided")
            if store is None:
                raise ConfigurationError("query watcher is enabled but no store was provided")
            for handler in self._handlers:
                if not isinstance(handler, Handler):
                    raise ConfigurationError(f"{handler!r} does not implement the handler interface")
            names = [h.name for h in self._handlers]
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise ConfigurationError(f"handler names must be unique: {', '.join(duplicates)}")

        self._sink = IngestionSink(store) if store is not None else None
        self._tasks: list[asyncio.Task[None]] = []
        self._started = False
        self._closed = False

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def sink(self) -> IngestionSink | None:
        return self._sink

    async def start(self) -> None:
        """Install every handler's hook and start its task (no-op when disabled)."""
        if self._started or not self._config.enabled:
            return
        assert self._sink is not None
        self._started = True
        for handler in self._handlers:
            # Hooks are installed before returning so no query is missed.
            handler.open()
            task = asyncio.create_task(handler.run(self._sink.accept), name=f"query-handler-{handler.name}")
            self._tasks.append(task)
        logger.info(
            "query watcher started with %d handler(s): %s",
            len(self._handlers),
            ", ".join(h.name for h in self._handlers),
        )

    async def aclose(self) -> None:
        """Stop listening, process what was already captured, close the store.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        for handler in self._handlers if self._started else []:
            await handler.close()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for handler, result in zip(self._handlers, results):
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error("handler %s stopped with an error", handler.name, exc_info=result)
        if self._sink is not None:
            await self._sink.aclose()

    async def __aenter__(self) -> QueryWatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def stats(self) -> dict[str, Any]:
        """Return handler counters and the sink's degraded status."""
        handler_stats = [h.stats() for h in self._handlers if callable(getattr(h, "stats", None))]
        return {
            "enabled": self._config.enabled,
            "handlers": handler_stats,
            "sink": self._sink.degraded_status() if self._sink is not None else None,
        }
