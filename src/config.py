"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating fields and providing actionable error messages.
"""

import logging
import os
import re
from typing import TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator

_T = TypeVar("_T", int, float)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var with a default."""
    value = os.getenv(name, "").strip()
    return value or default


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class WatcherConfig(BaseModel):
    """Configuration for the query watcher pipeline."""

    enabled: bool = Field(default=True, description="Capture queries at all")
    max_queue_size: int = Field(default=1000, description="Per-source buffer before payloads are dropped")
    preview_chars: int = Field(default=200, description="Query preview length in log messages")
    log_level: str = Field(default="INFO", description="Root log level for the demo entrypoint")

    @field_validator("max_queue_size", "preview_chars")
    def validate_positive(cls, v: int) -> int:
        """Buffer and preview sizes must be positive."""
        if v <= 0:
            raise ValueError(f"must be > 0. Got: {v}")
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Log level must be one of the standard `logging` level names."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"QUERY_WATCHER_LOG_LEVEL must be a logging level name. Got: {v!r}")
        return level


class StoreConfig(BaseModel):
    """Configuration for the DuckDB reference store."""

    path: str = Field(default="query_watcher.duckdb", description="DuckDB database file")
    table: str = Field(default="query_events", description="Table holding canonical events")

    @field_validator("table")
    def validate_table(cls, v: str) -> str:
        """Table must be a plain identifier (it is interpolated into DDL)."""
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"QUERY_WATCHER_TABLE must be a plain SQL identifier. Got: {v!r}")
        return v


class Config(BaseModel):
    """Top-level application configuration."""

    watcher: WatcherConfig = Field(default_factory=WatcherConfig, description="Pipeline configuration")
    store: StoreConfig = Field(default_factory=StoreConfig, description="Store configuration")


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages for malformed values.
    """
    dotenv.load_dotenv()

    watcher = WatcherConfig(
        enabled=_get_env_bool("QUERY_WATCHER_ENABLED", True),
        max_queue_size=_get_env_number("QUERY_WATCHER_MAX_QUEUE_SIZE", 1000, int),
        preview_chars=_get_env_number("QUERY_WATCHER_PREVIEW_CHARS", 200, int),
        log_level=_get_env_str("QUERY_WATCHER_LOG_LEVEL", "INFO"),
    )
    store = StoreConfig(
        path=_get_env_str("QUERY_WATCHER_DB_PATH", "query_watcher.duckdb"),
        table=_get_env_str("QUERY_WATCHER_TABLE", "query_events"),
    )
    return Config(watcher=watcher, store=store)
