"""Logging handler: queries reported through a library's `logging` logger.

Some data-access libraries instrument themselves by emitting log records with
the statement, its parameters and the elapsed time attached as record
attributes (`logger.debug("query", extra={"sql": ..., "params": ..., "elapsed_ms": ...})`).
This handler attaches a `logging.Handler` to that logger and republishes the
records on its channel.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from ..errors import ConfigurationError
from ..sql import format_query, interpolate
from .base import QueryHandler, is_transaction_marker


class LoggedStatement(BaseModel):
    """A statement carried by a log record."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sql: str
    params: Any = None
    elapsed_ms: float


class _RecordBridge(logging.Handler):
    def __init__(self, owner: LoggingHandler) -> None:
        super().__init__(level=logging.NOTSET)
        self._owner = owner

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._owner.on_record(record)
        except Exception:  # noqa: BLE001 - never raise into the library's logging call
            self.handleError(record)


class LoggingHandler(QueryHandler[LoggedStatement]):
    """Observes query records emitted on a named logger.

    While installed, the logger is lowered to `level` if needed so the
    library's query records are created at all. Its other records at that
    level are then created too and propagate to ancestor handlers as usual;
    set the level of the root handlers (or disable propagation on the library
    logger) if that output is unwanted. The original level is restored on close.
    """

    query_type = "sql"

    def __init__(
        self,
        logger_name: str,
        *,
        name: str | None = None,
        sql_attr: str = "sql",
        params_attr: str = "params",
        elapsed_attr: str = "elapsed_ms",
        paramstyle: str | None = None,
        level: int = logging.DEBUG,
        ignore: Callable[[str], bool] = is_transaction_marker,
        max_queue_size: int = 1000,
        preview_chars: int = 200,
    ) -> None:
        if not logger_name:
            raise ConfigurationError("a logger name is required to attach the logging handler")
        super().__init__(name=name or logger_name, max_queue_size=max_queue_size, preview_chars=preview_chars)
        self._logger = logging.getLogger(logger_name)
        self._sql_attr = sql_attr
        self._params_attr = params_attr
        self._elapsed_attr = elapsed_attr
        self.paramstyle = paramstyle
        self._level = level
        self._ignore = ignore
        self._bridge = _RecordBridge(self)
        self._previous_level: int | None = None

    def install(self) -> None:
        # The logger must let the library's query records through.
        self._previous_level = self._logger.level
        if self._logger.getEffectiveLevel() > self._level:
            self._logger.setLevel(self._level)
        self._logger.addHandler(self._bridge)

    def uninstall(self) -> None:
        self._logger.removeHandler(self._bridge)
        if self._previous_level is not None:
            self._logger.setLevel(self._previous_level)
            self._previous_level = None

    def on_record(self, record: logging.LogRecord) -> None:
        """Publish the statement carried by `record`; records without one are skipped."""
        sql = getattr(record, self._sql_attr, None)
        if not isinstance(sql, str):
            return
        self.channel.publish(
            LoggedStatement(
                sql=sql,
                params=getattr(record, self._params_attr, None),
                elapsed_ms=float(getattr(record, self._elapsed_attr, 0.0) or 0.0),
            )
        )

    def should_ignore(self, payload: LoggedStatement) -> bool:
        return self._ignore(payload.sql)

    def render_query(self, payload: LoggedStatement) -> str:
        return format_query(interpolate(payload.sql, payload.params, paramstyle=self.paramstyle))

    def elapsed_ms(self, payload: LoggedStatement) -> float:
        return payload.elapsed_ms

    def describe(self, payload: LoggedStatement) -> str:
        return payload.sql
