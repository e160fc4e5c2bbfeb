"""MongoDB handler: command-monitoring listener.

The handler exposes the `started` / `succeeded` / `failed` callbacks of a
driver command listener (the shape of pymongo's `CommandListener`). The start
event carries the command document, the completion event carries the
driver-measured duration in microseconds; the two are paired by request id.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict

from .base import QueryHandler

# Handshake, session and auth traffic carries no diagnostic value.
DEFAULT_IGNORED_COMMANDS = frozenset(
    {
        "authenticate",
        "buildinfo",
        "endsessions",
        "getmore",
        "hello",
        "ismaster",
        "killcursors",
        "ping",
        "saslcontinue",
        "saslstart",
        "aborttransaction",
        "committransaction",
    }
)

# Driver bookkeeping fields stripped from the displayed command.
_INTERNAL_FIELDS = frozenset({"$clusterTime", "$db", "$readPreference", "lsid", "txnNumber", "autocommit"})


class MongoCommand(BaseModel):
    """A completed command with its document and duration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    command_name: str
    database_name: str
    command: dict[str, Any]
    duration_micros: int
    failed: bool = False


class MongoCommandHandler(QueryHandler[MongoCommand]):
    """Turns monitored MongoDB commands into `mongodb` events.

    Pass the handler to the driver as a command listener, e.g.
    `MongoClient(event_listeners=[handler])` with a pymongo listener subclass
    forwarding to these methods.
    """

    query_type = "mongodb"

    def __init__(
        self,
        *,
        name: str = "mongodb",
        ignored_commands: Iterable[str] = DEFAULT_IGNORED_COMMANDS,
        max_queue_size: int = 1000,
        preview_chars: int = 200,
    ) -> None:
        super().__init__(name=name, max_queue_size=max_queue_size, preview_chars=preview_chars)
        self._ignored_commands = frozenset(c.lower() for c in ignored_commands)
        self._lock = threading.Lock()
        # request_id -> (command_name, database_name, command)
        self._pending: dict[Any, tuple[str, str, dict[str, Any]]] = {}
        self._listening = False

    def install(self) -> None:
        self._listening = True

    def uninstall(self) -> None:
        self._listening = False
        with self._lock:
            self._pending.clear()

    def started(self, event: Any) -> None:
        """Remember the command document until its completion event arrives."""
        if not self._listening:
            return
        with self._lock:
            self._pending[event.request_id] = (event.command_name, event.database_name, dict(event.command))

    def succeeded(self, event: Any) -> None:
        self._complete(event, failed=False)

    def failed(self, event: Any) -> None:
        self._complete(event, failed=True)

    def _complete(self, event: Any, *, failed: bool) -> None:
        with self._lock:
            started = self._pending.pop(event.request_id, None)
        if started is None:
            return
        command_name, database_name, command = started
        self.channel.publish(
            MongoCommand(
                command_name=command_name,
                database_name=database_name,
                command=command,
                duration_micros=event.duration_micros,
                failed=failed,
            )
        )

    def should_ignore(self, payload: MongoCommand) -> bool:
        return payload.command_name.lower() in self._ignored_commands

    def render_query(self, payload: MongoCommand) -> str:
        """Render as `db.<collection>.<command>(<json>)`."""
        command = dict(payload.command)
        target = command.pop(payload.command_name, None)
        body = {k: v for k, v in command.items() if k not in _INTERNAL_FIELDS}
        rendered = json.dumps(body, indent=2, sort_keys=True, default=str)
        if isinstance(target, str):
            return f"db.{target}.{payload.command_name}({rendered})"
        return f"db.{payload.command_name}({rendered})"

    def elapsed_ms(self, payload: MongoCommand) -> float:
        return payload.duration_micros / 1000.0

    def describe(self, payload: MongoCommand) -> str:
        return f"{payload.database_name}.{payload.command_name}"
