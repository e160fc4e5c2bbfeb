"""Error taxonomy for the query watcher.

Only `ConfigurationError` is fatal; the others are raised and handled per event
so a single bad query never stops the pipeline.
"""

from __future__ import annotations


class QueryWatchError(Exception):
    """Base class for query watcher errors."""


class InterpolationError(QueryWatchError):
    """Parameter values could not be bound into the query text."""


class IngestionError(QueryWatchError):
    """The store failed to persist a canonical event."""


class ConfigurationError(QueryWatchError):
    """The watcher or a handler was set up without the wiring it needs."""
