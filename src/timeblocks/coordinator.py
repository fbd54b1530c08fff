"""CRUD coordinator: the single writer of the event cache.

Every mutation is sent to the remote store first; the cache and the widget
are only touched once the store confirms. After each confirmed mutation a
background refresh re-fetches the whole collection, which is the only way
changes made elsewhere reach this client.
"""

from __future__ import annotations

import asyncio
import logging

from timeblocks.cache import EventCache
from timeblocks.errors import EventStoreError, sanitize_message
from timeblocks.interfaces import CalendarWidget, EventStore, Notifier, Severity
from timeblocks.models import CalendarEvent, EventRecord
from timeblocks.readiness import ReadinessGate

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "Your event is created!"
MESSAGE_UPDATED = "Your event is updated!"
MESSAGE_DELETED = "Your event is deleted!"


def _user_message(exc: Exception) -> str:
    if isinstance(exc, EventStoreError):
        return exc.message
    return sanitize_message(str(exc)) or type(exc).__name__


class CrudCoordinator:
    """Create/update/delete against the remote store, mirrored into the cache.

    Events passed in and out of the coordinator carry absolute instants.
    Mutations are not serialized here: the edit session keeps at most one
    round trip in flight (see ``busy``).
    """

    def __init__(
        self,
        store: EventStore,
        widget: CalendarWidget,
        notifier: Notifier,
        gate: ReadinessGate,
        cache: EventCache | None = None,
    ) -> None:
        self._store = store
        self._widget = widget
        self._notifier = notifier
        self._gate = gate
        self._cache = cache if cache is not None else EventCache()
        self._refresh_tasks: set[asyncio.Task[None]] = set()
        self.busy = False

    @property
    def cache(self) -> EventCache:
        return self._cache

    def snapshot(self) -> list[CalendarEvent]:
        return self._cache.snapshot()

    def restore_widget(self, event_id: str) -> None:
        """Redraw the cached version of *event_id* over what the widget shows."""
        cached = self._cache.get(event_id)
        if cached is not None and self._widget.lookup_by_id(event_id) is not None:
            self._widget.update_one(cached)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Fetch the full collection and replace the cache with it.

        Before the widget exists this reports data readiness to the gate;
        afterwards it re-renders the widget from the new cache contents. On
        failure the cache is cleared and the widget keeps what it last drew.
        """
        try:
            records = await self._store.fetch_all()
            events = [record.to_event() for record in records]
            # Raises on an id-less record before anything is swapped.
            self._cache.replace_all(events)
        except (EventStoreError, ValueError) as exc:
            self._cache.clear()
            logger.error("Event fetch failed: %s", exc)
            self._notifier.notify(_user_message(exc), Severity.error)
            return

        logger.debug("Fetched %d event(s)", len(self._cache))

        if self._gate.initialized:
            self._widget.render_all(self._cache.snapshot())
        else:
            self._gate.mark_data_loaded()
            self._gate.attempt_initialize()

    def refresh(self) -> asyncio.Task[None]:
        """Schedule a background :meth:`load` and return its task."""
        task = asyncio.create_task(self.load(), name="timeblocks-refresh")
        self._refresh_tasks.add(task)
        task.add_done_callback(self._on_refresh_done)
        return task

    def _on_refresh_done(self, task: asyncio.Task[None]) -> None:
        self._refresh_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background refresh crashed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait until no background refresh is outstanding."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._refresh_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_tasks.clear()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _report_failure(self, action: str, exc: EventStoreError) -> None:
        logger.error("Event %s failed: %s", action, exc)
        self._notifier.notify(exc.message, Severity.error)

    async def create(self, draft: CalendarEvent) -> CalendarEvent | None:
        """Persist *draft*; on success cache and render it with the store-assigned id."""
        record = EventRecord.from_event(draft.with_changes(id=None))
        self.busy = True
        try:
            event_id = await self._store.create(record)
        except EventStoreError as exc:
            self._report_failure("create", exc)
            return None
        finally:
            self.busy = False

        created = draft.with_changes(id=event_id)
        if event_id in self._cache:
            # A refresh already fetched the new record while the request was in flight.
            self._cache.replace(created)
        else:
            self._cache.append(created)
        if self._widget.lookup_by_id(event_id) is not None:
            self._widget.update_one(created)
        else:
            self._widget.render_one(created)
        logger.info("Created event %s (%s)", event_id, created.title)
        self._notifier.notify(MESSAGE_CREATED, Severity.success)
        self.refresh()
        return created

    async def update(self, event_id: str, draft: CalendarEvent) -> CalendarEvent | None:
        """Send *draft* as the new content of cached event *event_id*.

        Raises :class:`~timeblocks.errors.EventNotCachedError` when the id is
        not cached; that is a caller bug, not a remote failure.
        """
        self._cache.require(event_id)
        record = EventRecord.from_event(draft.with_changes(id=event_id))
        self.busy = True
        try:
            await self._store.update(event_id, record)
        except EventStoreError as exc:
            self._report_failure("update", exc)
            return None
        finally:
            self.busy = False

        current = self._cache.get(event_id)
        if current is None:
            # A refresh dropped it while the request was in flight; the next
            # refresh brings the server's version back.
            logger.warning("Updated event %s vanished from the cache before commit", event_id)
            updated = draft.with_changes(id=event_id)
        else:
            updated = current.with_changes(title=draft.title, start=draft.start, end=draft.end)
            self._cache.replace(updated)

        if self._widget.lookup_by_id(event_id) is not None:
            self._widget.update_one(updated)
        logger.info("Updated event %s", event_id)
        self._notifier.notify(MESSAGE_UPDATED, Severity.success)
        self.refresh()
        return updated

    async def remove(self, event_id: str) -> bool:
        """Delete cached event *event_id*; returns whether the store confirmed."""
        self._cache.require(event_id)
        self.busy = True
        try:
            await self._store.delete(event_id)
        except EventStoreError as exc:
            self._report_failure("delete", exc)
            return False
        finally:
            self.busy = False

        if event_id in self._cache:
            self._cache.discard(event_id)
        self._widget.remove_one(event_id)
        logger.info("Deleted event %s", event_id)
        self._notifier.notify(MESSAGE_DELETED, Severity.success)
        self.refresh()
        return True
