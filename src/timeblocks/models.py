"""Event data model shared by the cache, the edit session and the stores.

Instants are naive ``datetime`` values. Whether an instance holds local
wall-clock instants or absolute ones is decided by its owner: the event cache
and the calendar widget hold absolute instants, an edit-session draft holds
local ones (see :mod:`timeblocks.timenorm`).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field, field_validator, model_validator

from timeblocks.timenorm import format_instant, parse_instant

SECONDS_PER_HOUR = 3600


def duration_hours(start: datetime, end: datetime) -> float:
    """Return ``end - start`` in hours, rounded to two decimals."""
    return round((end - start).total_seconds() / SECONDS_PER_HOUR, 2)


class CalendarEvent(BaseModel):
    """A scheduled time-block.

    ``id`` is ``None`` for a draft that has not been persisted yet; the remote
    store assigns it on creation. ``duration_hours`` is derived from the
    boundaries and therefore always agrees with them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str | None = None
    title: str = ""
    start: datetime
    end: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_instant(cls, value: Any) -> Any:
        if isinstance(value, str | datetime):
            return parse_instant(value)
        return value

    @model_validator(mode="after")
    def _validate_order(self) -> CalendarEvent:
        if self.end < self.start:
            raise ValueError(
                f"end ({self.end.isoformat()}) must not be before start ({self.start.isoformat()})"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_hours(self) -> float:
        return duration_hours(self.start, self.end)

    @property
    def is_draft(self) -> bool:
        return self.id is None

    def with_changes(self, **changes: Any) -> CalendarEvent:
        """Return a re-validated copy with *changes* applied."""
        data = self.model_dump(exclude={"duration_hours"})
        data.update(changes)
        return CalendarEvent.model_validate(data)


class EventRecord(BaseModel):
    """Wire shape exchanged with the remote event store.

    ``hours`` is informational on the way in: the engine always recomputes the
    duration from ``start`` and ``end``.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str = ""
    start: str
    end: str
    hours: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_event(cls, event: CalendarEvent) -> EventRecord:
        return cls(
            id=event.id,
            title=event.title,
            start=format_instant(event.start),
            end=format_instant(event.end),
            hours=event.duration_hours,
        )

    def to_event(self) -> CalendarEvent:
        return CalendarEvent(id=self.id, title=self.title, start=self.start, end=self.end)

    def to_payload(self) -> dict[str, Any]:
        """Body sent on create/update; the id travels in the URL, never the body."""
        return self.model_dump(exclude={"id"})
