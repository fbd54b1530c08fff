"""Conversion between wall-clock local instants and absolute instants.

The zone offset is captured once when the normalizer is built and reused for
every conversion. A session that spans a daylight-saving transition will
therefore shift instants on the far side of the transition by the DST delta;
recomputing the offset per instant would fix that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

if TYPE_CHECKING:
    from timeblocks.models import CalendarEvent

logger = logging.getLogger(__name__)

# Monday-first, indexed by date.weekday().
WEEKDAYS: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def parse_instant(value: datetime | str) -> datetime:
    """Parse an ISO-8601 string (or pass a datetime through) as a naive instant.

    A trailing ``Z`` is accepted. Values carrying an explicit offset are
    converted to UTC before the zone is dropped.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = f"{normalized[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError as exc:
            raise ValueError(f"Invalid ISO-8601 instant: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def format_instant(value: datetime) -> str:
    """Format an instant as ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return f"{value.isoformat(timespec='milliseconds')}Z"


def weekday_label(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def date_title(local_instant: datetime) -> str:
    """ISO date portion of a local instant, used as the title of a draft."""
    return local_instant.date().isoformat()


@dataclass(frozen=True)
class TimeNormalizer:
    """Shifts instants by a fixed ``offset`` (UTC minus local wall-clock).

    The sign convention matches ``Date.getTimezoneOffset``: zones east of UTC
    have a negative offset.
    """

    offset: timedelta

    @classmethod
    def capture(cls, timezone: str | None = None, *, now: datetime | None = None) -> TimeNormalizer:
        """Capture the offset of *timezone* (host local zone when ``None``) at *now*."""
        if timezone is None:
            reference = (now or datetime.now()).astimezone()
        else:
            try:
                zone = ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown timezone: {timezone!r}") from exc
            reference = (now or datetime.now(UTC)).astimezone(zone)
        utcoffset = reference.utcoffset() or timedelta(0)
        normalizer = cls(offset=-utcoffset)
        logger.debug(
            "Captured zone offset %dms (timezone=%s)", normalizer.offset_ms, timezone or "local"
        )
        return normalizer

    @property
    def offset_ms(self) -> int:
        return int(self.offset / timedelta(milliseconds=1))

    def to_absolute(self, local_instant: datetime) -> datetime:
        return local_instant + self.offset

    def to_local(self, absolute_instant: datetime) -> datetime:
        return absolute_instant - self.offset

    def event_to_local(self, event: CalendarEvent) -> CalendarEvent:
        return event.with_changes(start=self.to_local(event.start), end=self.to_local(event.end))

    def event_to_absolute(self, event: CalendarEvent) -> CalendarEvent:
        return event.with_changes(
            start=self.to_absolute(event.start), end=self.to_absolute(event.end)
        )
