"""Weekly/daily hours aggregation over the event cache.

A pure projection: nothing is stored, every call recomputes from the events
it is given. Calendars are single-user, so the collections are small.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, ConfigDict

from timeblocks.models import CalendarEvent
from timeblocks.timenorm import TimeNormalizer, weekday_label


class DayGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    weekday: str
    daily_total_hours: float
    events: list[CalendarEvent]


class WeekGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    week_number: int
    weekly_total_hours: float
    days: list[DayGroup]


def week_number(day: date) -> int:
    """``ceil(((day - Jan 1) in days + 1) / 7)``: Jan 1..7 is week 1."""
    day_of_year = (day - date(day.year, 1, 1)).days + 1
    return math.ceil(day_of_year / 7)


def event_date(event: CalendarEvent, normalizer: TimeNormalizer) -> date:
    """Calendar date an event is filed under.

    Drafts are titled with their local start date, so the title is used when it
    is an ISO date; otherwise the local start date is.
    """
    try:
        return date.fromisoformat(event.title.strip())
    except ValueError:
        return normalizer.to_local(event.start).date()


def aggregate(events: Iterable[CalendarEvent], normalizer: TimeNormalizer) -> list[WeekGroup]:
    """Group *events* by week number, then by date, with summed durations.

    Weeks are ordered by ascending week number and days by ascending ISO date.
    Events keep their cache order inside a day.
    """
    by_week: dict[int, dict[str, list[CalendarEvent]]] = defaultdict(lambda: defaultdict(list))
    for event in events:
        day = event_date(event, normalizer)
        by_week[week_number(day)][day.isoformat()].append(event)

    weeks: list[WeekGroup] = []
    for number in sorted(by_week):
        days: list[DayGroup] = []
        for iso_date in sorted(by_week[number]):
            day_events = by_week[number][iso_date]
            days.append(
                DayGroup(
                    date=iso_date,
                    weekday=weekday_label(date.fromisoformat(iso_date)),
                    daily_total_hours=round(sum(e.duration_hours for e in day_events), 2),
                    events=day_events,
                )
            )
        weeks.append(
            WeekGroup(
                week_number=number,
                weekly_total_hours=round(sum(d.daily_total_hours for d in days), 2),
                days=days,
            )
        )
    return weeks
