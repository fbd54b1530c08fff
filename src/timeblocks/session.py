"""Edit session: the single draft a user is working on.

The session is a frozen value object; the controller replaces it wholesale on
every transition instead of mutating shared fields. Drafts hold local
wall-clock instants (what the form shows) and are converted to absolute
instants only when handed to the coordinator.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from timeblocks.coordinator import CrudCoordinator
from timeblocks.errors import SessionStateError
from timeblocks.interfaces import Notifier, WidgetCallbacks
from timeblocks.models import CalendarEvent
from timeblocks.timenorm import TimeNormalizer, date_title, parse_instant

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "Are you sure you want to delete this event?"
EDITABLE_FIELDS = frozenset({"title", "start", "end"})


class EditSession(BaseModel):
    """``selected_id`` is ``None`` in create mode and the target id in update mode.

    ``moved`` marks a session opened by a drop or resize: the widget already
    shows the staged boundaries, so abandoning the session redraws the cached
    ones.
    """

    model_config = ConfigDict(frozen=True)

    selected_id: str | None = None
    draft: CalendarEvent | None = None
    is_open: bool = False
    moved: bool = False

    @property
    def mode(self) -> Literal["create", "update"]:
        return "create" if self.selected_id is None else "update"

    @property
    def modal_name(self) -> str:
        return "Add Event" if self.selected_id is None else "Update Event"


class EditSessionController:
    """Opens, edits and commits the edit session.

    Opening a session while one is open discards the previous draft.
    """

    def __init__(
        self,
        coordinator: CrudCoordinator,
        normalizer: TimeNormalizer,
        notifier: Notifier,
    ) -> None:
        self._coordinator = coordinator
        self._normalizer = normalizer
        self._notifier = notifier
        self._session = EditSession()

    @property
    def session(self) -> EditSession:
        return self._session

    def callbacks(self) -> WidgetCallbacks:
        return WidgetCallbacks(
            on_range_select=self.open_for_range,
            on_event_click=self.open_for_click,
            on_event_drop=self.open_for_gesture,
            on_event_resize=self.open_for_gesture,
        )

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def _discard(self, *, keep: str | None = None) -> None:
        session = self._session
        if not (session.is_open and session.moved) or session.selected_id is None:
            return
        # A new gesture on the same event leaves its new position on screen.
        if session.selected_id != keep:
            self._coordinator.restore_widget(session.selected_id)

    def _open(
        self, selected_id: str | None, draft: CalendarEvent, *, moved: bool = False
    ) -> EditSession:
        if self._session.is_open:
            logger.debug("Discarding open %s draft", self._session.mode)
            self._discard(keep=selected_id if moved else None)
        self._session = EditSession(
            selected_id=selected_id, draft=draft, is_open=True, moved=moved
        )
        logger.debug("Opened %s session (selected_id=%s)", self._session.mode, selected_id)
        return self._session

    def open_for_range(self, start: datetime, end: datetime) -> EditSession:
        """Create mode for a range selected on the widget (absolute instants)."""
        local_start = self._normalizer.to_local(start)
        local_end = self._normalizer.to_local(end)
        draft = CalendarEvent(title=date_title(local_start), start=local_start, end=local_end)
        return self._open(None, draft)

    def open_blank(self, now: datetime | None = None) -> EditSession:
        """Create mode with a one-hour draft at the current local hour."""
        if now is None:
            now = self._normalizer.to_local(datetime.now(UTC).replace(tzinfo=None))
        start = now.replace(minute=0, second=0, microsecond=0)
        draft = CalendarEvent(title=date_title(start), start=start, end=start + timedelta(hours=1))
        return self._open(None, draft)

    def open_for_event(self, event_id: str) -> EditSession:
        """Update mode on a local-time copy of cached event *event_id*."""
        cached = self._coordinator.cache.require(event_id)
        return self._open(event_id, self._normalizer.event_to_local(cached))

    def open_for_click(self, event: CalendarEvent) -> EditSession:
        if event.id is None:
            raise SessionStateError("Clicked event has no id")
        return self.open_for_event(event.id)

    def open_for_gesture(self, event: CalendarEvent) -> EditSession:
        """Update mode staging the boundaries of a dragged or resized event."""
        if event.id is None:
            raise SessionStateError("Moved event has no id")
        cached = self._coordinator.cache.require(event.id)
        moved = cached.with_changes(start=event.start, end=event.end)
        local = self._normalizer.event_to_local(moved)
        draft = local.with_changes(title=date_title(local.start))
        return self._open(event.id, draft, moved=True)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _require_open(self) -> tuple[EditSession, CalendarEvent]:
        session = self._session
        if not session.is_open or session.draft is None:
            raise SessionStateError("No edit session is open")
        return session, session.draft

    def change(self, field: str, value: Any) -> EditSession:
        """Stage a form change on the draft.

        ``start``/``end`` accept datetimes or ISO-8601 strings in local time.
        A new start re-derives the title from its date. Raises ``ValueError``
        for unknown fields or when the change would put end before start.
        """
        session, current = self._require_open()
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown event field: {field!r}")

        if field == "title":
            changes: dict[str, Any] = {"title": "" if value is None else str(value)}
        else:
            instant = parse_instant(value)
            changes = {field: instant}
            if field == "start":
                changes["title"] = date_title(instant)

        draft = current.with_changes(**changes)
        self._session = session.model_copy(update={"draft": draft})
        return self._session

    def cancel(self) -> None:
        self._discard()
        self._session = EditSession()

    # ------------------------------------------------------------------
    # Committing
    # ------------------------------------------------------------------

    async def save(self) -> bool:
        """Commit the draft as a create or an update.

        The session is closed while the round trip is in flight. On success it
        resets; on failure it reopens with the same draft. Returns whether the
        store confirmed.
        """
        session, current = self._require_open()
        if self._coordinator.busy:
            logger.warning("Save ignored: another mutation is in flight")
            return False

        draft = self._normalizer.event_to_absolute(current)
        closed = session.model_copy(update={"is_open": False})
        self._session = closed

        result: CalendarEvent | None = None
        try:
            if session.selected_id is None:
                result = await self._coordinator.create(draft)
            else:
                result = await self._coordinator.update(session.selected_id, draft)
        finally:
            # Leave alone a session opened by a gesture during the round trip.
            if self._session is closed:
                self._session = EditSession() if result is not None else session
        return result is not None

    async def request_delete(self, event_id: str | None = None) -> bool:
        """Confirm with the user, then delete *event_id* (default: the selected event)."""
        target = event_id if event_id is not None else self._session.selected_id
        if target is None:
            raise SessionStateError("No event selected for deletion")
        self._coordinator.cache.require(target)
        if self._coordinator.busy:
            logger.warning("Delete ignored: another mutation is in flight")
            return False

        if not await self._notifier.confirm(DELETE_CONFIRMATION):
            logger.debug("Deletion of %s cancelled by user", target)
            return False

        removed = await self._coordinator.remove(target)
        if removed and self._session.selected_id == target:
            self._session = EditSession()
        return removed
