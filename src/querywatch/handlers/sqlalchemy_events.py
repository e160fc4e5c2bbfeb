"""SQLAlchemy handler: engine-level cursor execution events.

`before_cursor_execute` records a start time on the execution context and
`after_cursor_execute` publishes the statement with its start/end pair; the
handler differences the two itself.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine

from ..errors import ConfigurationError
from ..sql import format_query, interpolate
from .base import QueryHandler, is_transaction_marker

_START_ATTR = "_querywatch_started"

# SQLAlchemy-specific paramstyles mapped onto the lexer's styles.
_PARAMSTYLE_ALIASES = {"numeric_dollar": "numeric"}


class CursorExecution(BaseModel):
    """One statement as seen by `after_cursor_execute`."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    statement: str
    parameters: Any = None
    executemany: bool = False
    started: float
    finished: float


class SQLAlchemyHandler(QueryHandler[CursorExecution]):
    """Observes every cursor execution of a (sync or async) SQLAlchemy engine."""

    query_type = "sql"

    def __init__(
        self,
        engine: Engine | AsyncEngine,
        *,
        name: str = "sqlalchemy",
        ignore: Callable[[str], bool] = is_transaction_marker,
        max_queue_size: int = 1000,
        preview_chars: int = 200,
    ) -> None:
        if engine is None:
            raise ConfigurationError(f"{name}: an Engine or AsyncEngine is required")
        sync_engine = engine.sync_engine if isinstance(engine, AsyncEngine) else engine
        if not isinstance(sync_engine, Engine):
            raise ConfigurationError(f"{name}: expected a SQLAlchemy Engine, got {type(engine).__name__}")
        super().__init__(name=name, max_queue_size=max_queue_size, preview_chars=preview_chars)
        self._engine = sync_engine
        self._ignore = ignore

        dialect = sync_engine.dialect
        self.paramstyle: str = _PARAMSTYLE_ALIASES.get(dialect.paramstyle, dialect.paramstyle)
        # MySQL treats backslash as an escape inside string literals by default.
        self.backslash_escapes = dialect.name in {"mysql", "mariadb"}

    def install(self) -> None:
        event.listen(self._engine, "before_cursor_execute", self._before_cursor_execute)
        event.listen(self._engine, "after_cursor_execute", self._after_cursor_execute)

    def uninstall(self) -> None:
        event.remove(self._engine, "before_cursor_execute", self._before_cursor_execute)
        event.remove(self._engine, "after_cursor_execute", self._after_cursor_execute)

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        started = time.perf_counter()
        if context is not None:
            setattr(context, _START_ATTR, started)
        else:
            conn.info.setdefault(_START_ATTR, []).append(started)

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany) -> None:
        finished = time.perf_counter()
        if context is not None:
            started = getattr(context, _START_ATTR, None)
        else:
            stack = conn.info.get(_START_ATTR) or []
            started = stack.pop() if stack else None
        if started is None:
            return
        self.channel.publish(
            CursorExecution(
                statement=statement,
                parameters=parameters,
                executemany=executemany,
                started=started,
                finished=finished,
            )
        )

    def should_ignore(self, payload: CursorExecution) -> bool:
        return self._ignore(payload.statement)

    def _interpolate(self, statement: str, parameters: Any) -> str:
        return interpolate(
            statement,
            parameters,
            paramstyle=self.paramstyle,
            backslash_escapes=self.backslash_escapes,
        )

    def render_query(self, payload: CursorExecution) -> str:
        if payload.executemany:
            # One rendered statement per parameter set.
            statements = [self._interpolate(payload.statement, p) for p in payload.parameters or ()]
            query = ";\n".join(statements) if statements else payload.statement
        else:
            query = self._interpolate(payload.statement, payload.parameters)
        return format_query(query)

    def elapsed_ms(self, payload: CursorExecution) -> float:
        return (payload.finished - payload.started) * 1000.0

    def describe(self, payload: CursorExecution) -> str:
        return payload.statement
