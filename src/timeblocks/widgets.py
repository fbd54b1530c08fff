"""Headless widget and notifier adapters.

These stand in for a real calendar surface and toast system when the engine
runs without a UI (the CLI) and double as the adapters tests drive gestures
through.
"""

from __future__ import annotations

import logging
from datetime import datetime

from timeblocks.errors import ResourceLoadError
from timeblocks.interfaces import CalendarWidget, Notifier, Severity, WidgetCallbacks
from timeblocks.models import CalendarEvent

logger = logging.getLogger(__name__)

_SEVERITY_LEVELS = {
    Severity.success: logging.INFO,
    Severity.info: logging.INFO,
    Severity.warning: logging.WARNING,
    Severity.error: logging.ERROR,
}


class HeadlessWidget(CalendarWidget):
    """Keeps the rendered events in memory, keyed by id."""

    def __init__(self, *, resources_error: Exception | None = None) -> None:
        self._resources_error = resources_error
        self._rendered: dict[str, CalendarEvent] = {}
        self._callbacks: WidgetCallbacks | None = None
        self.resources_loaded = False

    @property
    def initialized(self) -> bool:
        return self._callbacks is not None

    @property
    def rendered(self) -> list[CalendarEvent]:
        return list(self._rendered.values())

    async def load_resources(self) -> None:
        if self._resources_error is not None:
            raise ResourceLoadError("Calendar resources could not be loaded") from (
                self._resources_error
            )
        self.resources_loaded = True

    def initialize(self, events: list[CalendarEvent], callbacks: WidgetCallbacks) -> None:
        if self._callbacks is not None:
            raise RuntimeError("Widget is already initialized")
        self._callbacks = callbacks
        self.render_all(events)

    def render_all(self, events: list[CalendarEvent]) -> None:
        self._rendered = {event.id: event for event in events if event.id is not None}

    def render_one(self, event: CalendarEvent) -> None:
        if event.id is None:
            raise ValueError("Cannot render an event without an id")
        self._rendered[event.id] = event

    def remove_one(self, event_id: str) -> None:
        self._rendered.pop(event_id, None)

    def update_one(self, event: CalendarEvent) -> None:
        if event.id in self._rendered:
            self._rendered[event.id] = event

    def lookup_by_id(self, event_id: str) -> CalendarEvent | None:
        return self._rendered.get(event_id)

    # -- gestures -------------------------------------------------------
    # Drops and resizes move the rendered event before the callback fires.

    def _require_callbacks(self) -> WidgetCallbacks:
        if self._callbacks is None:
            raise RuntimeError("Widget is not initialized")
        return self._callbacks

    def _require_rendered(self, event_id: str) -> CalendarEvent:
        event = self._rendered.get(event_id)
        if event is None:
            raise KeyError(f"Event '{event_id}' is not rendered")
        return event

    def select_range(self, start: datetime, end: datetime) -> None:
        self._require_callbacks().on_range_select(start, end)

    def click(self, event_id: str) -> None:
        self._require_callbacks().on_event_click(self._require_rendered(event_id))

    def drop(self, event_id: str, start: datetime, end: datetime) -> None:
        callbacks = self._require_callbacks()
        moved = self._require_rendered(event_id).with_changes(start=start, end=end)
        self._rendered[event_id] = moved
        callbacks.on_event_drop(moved)

    def resize(self, event_id: str, end: datetime) -> None:
        callbacks = self._require_callbacks()
        resized = self._require_rendered(event_id).with_changes(end=end)
        self._rendered[event_id] = resized
        callbacks.on_event_resize(resized)


class LoggingNotifier(Notifier):
    """Logs toasts and answers every confirmation with ``confirm_answer``."""

    def __init__(self, *, confirm_answer: bool = True) -> None:
        self.confirm_answer = confirm_answer
        self.messages: list[tuple[str, Severity]] = []

    async def confirm(self, message: str) -> bool:
        logger.info("Confirmation requested: %s -> %s", message, self.confirm_answer)
        return self.confirm_answer

    def notify(self, message: str, severity: Severity) -> None:
        self.messages.append((message, severity))
        logger.log(_SEVERITY_LEVELS.get(severity, logging.INFO), "[%s] %s", severity, message)
