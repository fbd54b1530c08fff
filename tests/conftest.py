"""Shared fixtures for the timeblocks test suite."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from timeblocks.engine import CalendarEngine
from timeblocks.models import CalendarEvent, EventRecord
from timeblocks.readiness import ReadinessGate
from timeblocks.stores.memory import InMemoryEventStore
from timeblocks.timenorm import TimeNormalizer
from timeblocks.widgets import HeadlessWidget, LoggingNotifier

# UTC+2, e.g. Central European Summer Time: local = absolute + 2h.
PARIS_SUMMER_OFFSET = timedelta(hours=-2)


def make_event(
    event_id: str | None = "42",
    *,
    title: str = "2024-06-24",
    start: datetime = datetime(2024, 6, 24, 7, 0),
    hours: float = 6,
) -> CalendarEvent:
    return CalendarEvent(id=event_id, title=title, start=start, end=start + timedelta(hours=hours))


def make_record(
    event_id: str = "42",
    *,
    title: str = "2024-06-24",
    start: str = "2024-06-24T07:00:00.000Z",
    end: str = "2024-06-24T13:00:00.000Z",
) -> EventRecord:
    return EventRecord(id=event_id, title=title, start=start, end=end)


@pytest.fixture
def normalizer() -> TimeNormalizer:
    return TimeNormalizer(offset=PARIS_SUMMER_OFFSET)


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore([make_record()])


@pytest.fixture
def widget() -> HeadlessWidget:
    return HeadlessWidget()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def gate() -> ReadinessGate:
    return ReadinessGate(MagicMock(name="initializer"))


@pytest.fixture
async def engine(store, widget, notifier, normalizer):
    """A started engine over the seeded in-memory store."""
    engine = CalendarEngine(store=store, widget=widget, notifier=notifier, normalizer=normalizer)
    await engine.start()
    yield engine
    await engine.shutdown()
