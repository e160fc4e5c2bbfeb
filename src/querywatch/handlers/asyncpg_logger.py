"""asyncpg handler: driver-level query logger.

asyncpg reports each executed query to callbacks registered with
`Connection.add_query_logger`, with the elapsed time already measured by the
driver and `$n` placeholders in the query text.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import asyncpg
from pydantic import BaseModel, ConfigDict

from ..errors import ConfigurationError
from ..sql import format_query, interpolate
from .base import QueryHandler, is_transaction_marker


class AsyncpgQuery(BaseModel):
    """The parts of asyncpg's `LoggedQuery` record the handler uses."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    query: str
    args: tuple[Any, ...] = ()
    elapsed: float
    exception: BaseException | None = None


class AsyncpgHandler(QueryHandler[AsyncpgQuery]):
    """Observes the queries of one asyncpg connection."""

    query_type = "sql"

    def __init__(
        self,
        connection: asyncpg.Connection,
        *,
        name: str = "asyncpg",
        ignore: Callable[[str], bool] = is_transaction_marker,
        max_queue_size: int = 1000,
        preview_chars: int = 200,
    ) -> None:
        if connection is None:
            raise ConfigurationError(f"{name}: an asyncpg connection is required")
        if not callable(getattr(connection, "add_query_logger", None)):
            raise ConfigurationError(f"{name}: connection does not support query loggers (asyncpg >= 0.29)")
        super().__init__(name=name, max_queue_size=max_queue_size, preview_chars=preview_chars)
        self._connection = connection
        self._ignore = ignore

    def install(self) -> None:
        self._connection.add_query_logger(self._on_query)

    def uninstall(self) -> None:
        self._connection.remove_query_logger(self._on_query)

    def _on_query(self, record: Any) -> None:
        self.channel.publish(
            AsyncpgQuery(
                query=record.query,
                args=tuple(record.args or ()),
                elapsed=record.elapsed,
                exception=record.exception,
            )
        )

    def should_ignore(self, payload: AsyncpgQuery) -> bool:
        return self._ignore(payload.query)

    def render_query(self, payload: AsyncpgQuery) -> str:
        return format_query(interpolate(payload.query, payload.args, paramstyle="numeric"))

    def elapsed_ms(self, payload: AsyncpgQuery) -> float:
        # asyncpg reports seconds.
        return payload.elapsed * 1000.0

    def describe(self, payload: AsyncpgQuery) -> str:
        return payload.query
