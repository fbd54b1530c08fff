"""In-process event store for headless runs and tests."""

from __future__ import annotations

import itertools
from collections.abc import Iterable

from timeblocks.errors import EventStoreError, EventStoreRequestError
from timeblocks.interfaces import EventStore
from timeblocks.models import EventRecord

OPERATIONS = frozenset({"fetch_all", "create", "update", "delete"})


class InMemoryEventStore(EventStore):
    """Keeps records in a dict and hands out sequential string ids.

    :meth:`fail_next` arms a one-shot failure for an operation, which is how
    tests exercise the error paths of the coordinator.
    """

    def __init__(self, records: Iterable[EventRecord] = ()) -> None:
        self._records: dict[str, EventRecord] = {}
        self._ids = itertools.count(1)
        self._failures: dict[str, EventStoreError] = {}
        for record in records:
            event_id = record.id if record.id is not None else self._next_id()
            self._records[event_id] = record.model_copy(update={"id": event_id})

    @property
    def records(self) -> list[EventRecord]:
        return list(self._records.values())

    def _next_id(self) -> str:
        while True:
            candidate = str(next(self._ids))
            if candidate not in self._records:
                return candidate

    def fail_next(self, operation: str, message: str = "Internal server error") -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown store operation: {operation!r}")
        self._failures[operation] = EventStoreRequestError(status_code=500, message=message)

    def _raise_if_armed(self, operation: str) -> None:
        exc = self._failures.pop(operation, None)
        if exc is not None:
            raise exc

    def _require(self, event_id: str) -> None:
        if event_id not in self._records:
            raise EventStoreRequestError(status_code=404, message=f"Event '{event_id}' not found")

    async def fetch_all(self) -> list[EventRecord]:
        self._raise_if_armed("fetch_all")
        return [record.model_copy() for record in self._records.values()]

    async def create(self, record: EventRecord) -> str:
        self._raise_if_armed("create")
        event_id = self._next_id()
        self._records[event_id] = record.model_copy(update={"id": event_id})
        return event_id

    async def update(self, event_id: str, record: EventRecord) -> None:
        self._raise_if_armed("update")
        self._require(event_id)
        self._records[event_id] = record.model_copy(update={"id": event_id})

    async def delete(self, event_id: str) -> None:
        self._raise_if_armed("delete")
        self._require(event_id)
        del self._records[event_id]
