"""Query watcher: capture, normalize and persist database query events.

Handlers subscribe to data-access libraries (SQLAlchemy engines, asyncpg
connections, logging-instrumented drivers, MongoDB command monitoring) and turn
their native payloads into `CanonicalQueryEvent`s. A single `IngestionSink`
forwards those events to a store without ever blocking or failing the host.
"""

from .errors import ConfigurationError, IngestionError, InterpolationError, QueryWatchError
from .models import CanonicalQueryEvent, QueryType, format_duration
from .sink import IngestionSink
from .stores import DuckDBQueryStore, InMemoryQueryStore, QueryStore
from .watcher import QueryWatcher

__all__ = [
    "CanonicalQueryEvent",
    "ConfigurationError",
    "DuckDBQueryStore",
    "InMemoryQueryStore",
    "IngestionError",
    "IngestionSink",
    "InterpolationError",
    "QueryStore",
    "QueryType",
    "QueryWatchError",
    "QueryWatcher",
    "format_duration",
]
