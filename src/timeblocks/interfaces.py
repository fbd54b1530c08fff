"""Contracts for the external collaborators of the engine.

The engine never talks to a concrete calendar plugin, toast system or
network client directly; it goes through these interfaces so any of them can
be swapped (or faked in tests).
"""

from __future__ import annotations

import abc
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from timeblocks.models import CalendarEvent, EventRecord


class Severity(StrEnum):
    """Toast variants understood by notifiers."""

    success = "success"
    error = "error"
    warning = "warning"
    info = "info"


@dataclass(frozen=True)
class WidgetCallbacks:
    """Gesture handlers a widget invokes; each one opens an edit session.

    Instants and events passed to these handlers are absolute, as the widget
    holds them.
    """

    on_range_select: Callable[[datetime, datetime], None]
    on_event_click: Callable[[CalendarEvent], None]
    on_event_drop: Callable[[CalendarEvent], None]
    on_event_resize: Callable[[CalendarEvent], None]


class EventStore(abc.ABC):
    """Remote event store (network transport, persistence and auth live behind it)."""

    @abc.abstractmethod
    async def fetch_all(self) -> list[EventRecord]:
        """Return the full event collection."""
        ...

    @abc.abstractmethod
    async def create(self, record: EventRecord) -> str:
        """Persist *record* and return the identifier assigned by the store."""
        ...

    @abc.abstractmethod
    async def update(self, event_id: str, record: EventRecord) -> None:
        """Overwrite the mutable fields of an existing event."""
        ...

    @abc.abstractmethod
    async def delete(self, event_id: str) -> None:
        """Delete an event."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""


class CalendarWidget(abc.ABC):
    """Visual calendar surface painting a month/week/day grid."""

    @abc.abstractmethod
    async def load_resources(self) -> None:
        """Load the scripts/styles the widget needs.

        Raises :class:`~timeblocks.errors.ResourceLoadError` on failure.
        """
        ...

    @abc.abstractmethod
    def initialize(self, events: list[CalendarEvent], callbacks: WidgetCallbacks) -> None:
        """Build the calendar with its initial events and gesture callbacks."""
        ...

    @abc.abstractmethod
    def render_all(self, events: list[CalendarEvent]) -> None:
        """Clear every rendered event, then render *events*."""
        ...

    @abc.abstractmethod
    def render_one(self, event: CalendarEvent) -> None: ...

    @abc.abstractmethod
    def remove_one(self, event_id: str) -> None: ...

    @abc.abstractmethod
    def update_one(self, event: CalendarEvent) -> None: ...

    @abc.abstractmethod
    def lookup_by_id(self, event_id: str) -> CalendarEvent | None: ...


class Notifier(abc.ABC):
    """Confirmation dialogs and toast notifications."""

    @abc.abstractmethod
    async def confirm(self, message: str) -> bool: ...

    @abc.abstractmethod
    def notify(self, message: str, severity: Severity) -> None: ...
