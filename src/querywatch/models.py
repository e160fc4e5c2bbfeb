"""Canonical query event model.

Every handler converts its source's native payload into a `CanonicalQueryEvent`
before it leaves the pipeline. Events are:
- Structurally complete (all four fields required, extras rejected).
- Display-ready (query already interpolated and formatted).
- Stamped with the capture time, not the query start time.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

QueryType = Literal["sql", "mongodb"]

_DURATION_RE = re.compile(r"^\d+\.\d ms$")


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


def format_duration(elapsed_ms: float) -> str:
    """Render elapsed milliseconds with one decimal place, e.g. ``"12.3 ms"``."""
    if math.isnan(elapsed_ms) or elapsed_ms < 0:
        elapsed_ms = 0.0
    return f"{elapsed_ms:.1f} ms"


class CanonicalQueryEvent(BaseModel):
    """A normalized, display-ready record of one query execution."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    query: str = Field(..., min_length=1)
    duration: str
    type: QueryType
    created_at: str = Field(..., alias="createdAt")

    @field_validator("duration")
    def validate_duration(cls, v: str) -> str:
        """Duration must carry one decimal place and the `ms` unit."""
        if not _DURATION_RE.match(v):
            raise ValueError(f"duration must look like '12.3 ms'. Got: {v!r}")
        return v

    @field_validator("created_at")
    def validate_created_at(cls, v: str) -> str:
        """createdAt must be an ISO-8601 timestamp."""
        try:
            datetime.fromisoformat(v)
        except ValueError as exc:
            raise ValueError(f"createdAt must be an ISO-8601 timestamp. Got: {v!r}") from exc
        return v

    @classmethod
    def build(
        cls,
        *,
        query: str,
        elapsed_ms: float,
        type: QueryType,
        captured_at: datetime,
    ) -> CanonicalQueryEvent:
        """Build an event from raw measurements taken by a handler."""
        return cls(
            query=query,
            duration=format_duration(elapsed_ms),
            type=type,
            created_at=captured_at.isoformat(),
        )

    @property
    def captured_at(self) -> datetime:
        """The capture time parsed back into a datetime."""
        return datetime.fromisoformat(self.created_at)

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase shape external stores accept."""
        return self.model_dump(by_alias=True)
