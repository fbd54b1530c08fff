"""In-memory mirror of the last known server state."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from timeblocks.errors import EventNotCachedError
from timeblocks.models import CalendarEvent


class EventCache:
    """Ordered collection of persisted events keyed by id.

    Only the CRUD coordinator mutates the cache; everyone else reads
    :meth:`snapshot`. Events are frozen models, so a snapshot can be handed
    out without copying each record.
    """

    def __init__(self, events: Iterable[CalendarEvent] = ()) -> None:
        self._events: dict[str, CalendarEvent] = {}
        self.replace_all(events)

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def __iter__(self) -> Iterator[CalendarEvent]:
        return iter(self.snapshot())

    @staticmethod
    def _require_persisted(event: CalendarEvent) -> str:
        if event.id is None:
            raise ValueError("Draft events (id=None) cannot be cached")
        return event.id

    def snapshot(self) -> list[CalendarEvent]:
        return list(self._events.values())

    def get(self, event_id: str) -> CalendarEvent | None:
        return self._events.get(event_id)

    def require(self, event_id: str) -> CalendarEvent:
        try:
            return self._events[event_id]
        except KeyError:
            raise EventNotCachedError(event_id) from None

    def replace_all(self, events: Iterable[CalendarEvent]) -> None:
        """Replace the cache wholesale; later duplicates of an id win."""
        replacement: dict[str, CalendarEvent] = {}
        for event in events:
            replacement[self._require_persisted(event)] = event
        self._events = replacement

    def append(self, event: CalendarEvent) -> None:
        event_id = self._require_persisted(event)
        if event_id in self._events:
            raise ValueError(f"Event '{event_id}' is already cached")
        self._events[event_id] = event

    def replace(self, event: CalendarEvent) -> None:
        """Swap the cached record with the same id, keeping its position."""
        event_id = self._require_persisted(event)
        self.require(event_id)
        self._events[event_id] = event

    def discard(self, event_id: str) -> CalendarEvent:
        self.require(event_id)
        return self._events.pop(event_id)

    def clear(self) -> None:
        self._events = {}
