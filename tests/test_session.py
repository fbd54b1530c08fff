"""Tests for the edit session controller."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from timeblocks.cache import EventCache
from timeblocks.coordinator import CrudCoordinator
from timeblocks.errors import EventNotCachedError, SessionStateError
from timeblocks.interfaces import CalendarWidget, Severity
from timeblocks.models import CalendarEvent
from timeblocks.readiness import ReadinessGate
from timeblocks.session import DELETE_CONFIRMATION, EditSession, EditSessionController
from timeblocks.widgets import LoggingNotifier
from tests.conftest import make_event

pytestmark = pytest.mark.unit


@pytest.fixture
def mock_widget() -> MagicMock:
    widget = MagicMock(spec=CalendarWidget)
    widget.lookup_by_id.return_value = None
    return widget


@pytest.fixture
def coordinator(store, notifier, mock_widget) -> CrudCoordinator:
    return CrudCoordinator(
        store, mock_widget, notifier, ReadinessGate(MagicMock()), EventCache([make_event("42")])
    )


@pytest.fixture
def controller(coordinator, normalizer, notifier) -> EditSessionController:
    return EditSessionController(coordinator, normalizer, notifier)


class TestEditSessionValue:
    def test_defaults_to_closed_create_mode(self):
        session = EditSession()
        assert session.is_open is False
        assert session.draft is None
        assert session.mode == "create"
        assert session.modal_name == "Add Event"

    def test_update_mode(self):
        session = EditSession(selected_id="42", draft=make_event("42"), is_open=True)
        assert session.mode == "update"
        assert session.modal_name == "Update Event"


class TestOpening:
    def test_range_select_opens_local_draft_titled_by_date(self, controller):
        # 23:00Z is already the next day at UTC+2.
        session = controller.open_for_range(
            datetime(2024, 6, 24, 23, 0), datetime(2024, 6, 25, 1, 0)
        )

        assert session.is_open
        assert session.mode == "create"
        assert session.draft == CalendarEvent(
            title="2024-06-25", start=datetime(2024, 6, 25, 1, 0), end=datetime(2024, 6, 25, 3, 0)
        )

    def test_blank_opens_one_hour_at_current_hour(self, controller):
        session = controller.open_blank(now=datetime(2024, 6, 24, 9, 41, 12))

        assert session.mode == "create"
        assert session.draft.start == datetime(2024, 6, 24, 9, 0)
        assert session.draft.end == datetime(2024, 6, 24, 10, 0)
        assert session.draft.title == "2024-06-24"

    def test_open_for_event_copies_cached_record_in_local_time(self, controller, coordinator):
        session = controller.open_for_event("42")

        assert session.selected_id == "42"
        assert session.draft.start == datetime(2024, 6, 24, 9, 0)
        assert session.draft.end == datetime(2024, 6, 24, 15, 0)
        assert coordinator.cache.require("42").start == datetime(2024, 6, 24, 7, 0)

    def test_open_for_unknown_event(self, controller):
        with pytest.raises(EventNotCachedError):
            controller.open_for_event("missing")

    def test_click_without_id(self, controller):
        with pytest.raises(SessionStateError):
            controller.open_for_click(make_event(None))

    def test_gesture_stages_moved_boundaries(self, controller):
        moved = make_event("42", start=datetime(2024, 6, 25, 6, 0), hours=2)

        session = controller.open_for_gesture(moved)

        assert session.mode == "update"
        assert session.draft.id == "42"
        assert session.draft.start == datetime(2024, 6, 25, 8, 0)
        assert session.draft.end == datetime(2024, 6, 25, 10, 0)
        assert session.draft.title == "2024-06-25"

    def test_gesture_without_id(self, controller):
        with pytest.raises(SessionStateError, match="no id"):
            controller.open_for_gesture(make_event(None))

    def test_opening_discards_previous_draft(self, controller):
        controller.open_for_event("42")
        controller.change("title", "unsaved")

        session = controller.open_blank(now=datetime(2024, 7, 1, 8, 0))

        assert session.mode == "create"
        assert session.draft.title == "2024-07-01"

    def test_callbacks_route_gestures(self, controller):
        callbacks = controller.callbacks()
        assert callbacks.on_event_drop == controller.open_for_gesture
        assert callbacks.on_event_resize == controller.open_for_gesture
        assert callbacks.on_range_select == controller.open_for_range
        assert callbacks.on_event_click == controller.open_for_click


class TestChange:
    def test_start_change_rederives_title(self, controller):
        controller.open_for_event("42")

        session = controller.change("start", "2024-06-23T10:00")

        assert session.draft.start == datetime(2024, 6, 23, 10, 0)
        assert session.draft.title == "2024-06-23"

    def test_end_change_keeps_title(self, controller):
        controller.open_for_event("42")
        controller.change("title", "focus")
        session = controller.change("end", datetime(2024, 6, 24, 17, 0))
        assert session.draft.title == "focus"
        assert session.draft.duration_hours == 8.0

    def test_title_none_becomes_empty(self, controller):
        controller.open_blank(now=datetime(2024, 6, 24, 9, 0))
        assert controller.change("title", None).draft.title == ""

    def test_end_before_start_is_rejected(self, controller):
        controller.open_for_event("42")
        with pytest.raises(ValueError):
            controller.change("end", "2024-06-24T08:00")
        assert controller.session.draft.end == datetime(2024, 6, 24, 15, 0)

    def test_unknown_field(self, controller):
        controller.open_for_event("42")
        with pytest.raises(ValueError, match="Unknown event field"):
            controller.change("location", "office")

    def test_change_without_open_session(self, controller):
        with pytest.raises(SessionStateError):
            controller.change("title", "x")

    def test_cancel_resets(self, controller):
        controller.open_for_event("42")
        controller.cancel()
        assert controller.session == EditSession()


class TestGestureCancel:
    @pytest.fixture
    def cached(self, coordinator, mock_widget) -> CalendarEvent:
        cached = coordinator.cache.require("42")
        mock_widget.lookup_by_id.return_value = cached
        return cached

    def _move(self, controller, hours: float = 2) -> None:
        controller.open_for_gesture(
            make_event("42", start=datetime(2024, 6, 25, 6, 0), hours=hours)
        )

    def test_cancel_redraws_cached_boundaries(self, controller, mock_widget, cached):
        self._move(controller)
        assert controller.session.moved

        controller.cancel()

        mock_widget.update_one.assert_called_once_with(cached)
        assert controller.session == EditSession()

    def test_cancel_after_click_leaves_widget_alone(self, controller, mock_widget, cached):
        controller.open_for_event("42")
        controller.cancel()
        mock_widget.update_one.assert_not_called()

    def test_opening_another_session_redraws(self, controller, mock_widget, cached):
        self._move(controller)
        controller.open_blank(now=datetime(2024, 7, 1, 8, 0))
        mock_widget.update_one.assert_called_once_with(cached)

    def test_second_gesture_on_same_event_keeps_new_position(
        self, controller, mock_widget, cached
    ):
        self._move(controller)
        self._move(controller, hours=3)
        mock_widget.update_one.assert_not_called()
        assert controller.session.draft.duration_hours == 3.0

    async def test_successful_save_does_not_redraw_old_boundaries(
        self, controller, coordinator, mock_widget, cached
    ):
        self._move(controller)

        assert await controller.save() is True

        (updated,) = mock_widget.update_one.call_args.args
        assert updated.start == datetime(2024, 6, 25, 6, 0)
        mock_widget.update_one.assert_called_once()
        await coordinator.drain()


class TestSave:
    async def test_create_converts_to_absolute_and_resets(
        self, controller, coordinator, store, notifier
    ):
        controller.open_for_range(datetime(2024, 6, 26, 7, 0), datetime(2024, 6, 26, 9, 0))

        assert await controller.save() is True

        assert controller.session == EditSession()
        created = [e for e in coordinator.snapshot() if e.id != "42"]
        assert len(created) == 1
        assert created[0].start == datetime(2024, 6, 26, 7, 0)
        assert created[0].title == "2024-06-26"
        assert store.records[-1].start == "2024-06-26T07:00:00.000Z"
        assert notifier.messages[-1] == ("Your event is created!", Severity.success)
        await coordinator.drain()

    async def test_update_sends_selected_id(self, controller, coordinator, store):
        controller.open_for_event("42")
        controller.change("end", "2024-06-24T11:00")

        assert await controller.save() is True

        assert coordinator.cache.require("42").end == datetime(2024, 6, 24, 9, 0)
        assert coordinator.cache.require("42").duration_hours == 2.0
        assert store.records[0].end == "2024-06-24T09:00:00.000Z"
        await coordinator.drain()

    async def test_failed_save_reopens_with_draft(self, controller, coordinator, store, notifier):
        session = controller.open_for_event("42")
        controller.change("title", "renamed")
        before = controller.session
        store.fail_next("update", "Record locked")

        assert await controller.save() is False

        assert controller.session == before
        assert controller.session.is_open
        assert coordinator.cache.require("42").title == session.draft.title
        assert notifier.messages[-1] == ("Record locked", Severity.error)

    async def test_save_while_busy_is_refused(self, controller, coordinator):
        controller.open_for_event("42")
        coordinator.busy = True

        assert await controller.save() is False

        assert controller.session.is_open

    async def test_session_is_closed_during_round_trip(self, normalizer, notifier):
        coordinator = MagicMock(spec=CrudCoordinator)
        coordinator.busy = False
        coordinator.cache = EventCache([make_event("42")])
        controller = EditSessionController(coordinator, normalizer, notifier)
        observed: list[bool] = []

        async def _update(event_id, draft):
            observed.append(controller.session.is_open)
            assert draft.start == datetime(2024, 6, 24, 7, 0)
            return draft

        coordinator.update = AsyncMock(side_effect=_update)
        controller.open_for_event("42")

        assert await controller.save() is True
        assert observed == [False]

    async def test_save_without_open_session(self, controller):
        with pytest.raises(SessionStateError):
            await controller.save()


class TestRequestDelete:
    async def test_confirmed_delete_removes_and_resets(self, controller, coordinator, notifier):
        controller.open_for_event("42")

        assert await controller.request_delete() is True

        assert "42" not in coordinator.cache
        assert controller.session == EditSession()
        assert notifier.messages[-1] == ("Your event is deleted!", Severity.success)
        await coordinator.drain()

    async def test_declined_delete_keeps_record(self, coordinator, normalizer):
        notifier = LoggingNotifier(confirm_answer=False)
        notifier.confirm = AsyncMock(return_value=False)
        controller = EditSessionController(coordinator, normalizer, notifier)
        controller.open_for_event("42")

        assert await controller.request_delete() is False

        notifier.confirm.assert_awaited_once_with(DELETE_CONFIRMATION)
        assert "42" in coordinator.cache
        assert controller.session.is_open

    async def test_delete_explicit_id_without_session(self, controller, coordinator):
        assert await controller.request_delete("42") is True
        assert len(coordinator.cache) == 0
        await coordinator.drain()

    async def test_delete_without_selection(self, controller):
        with pytest.raises(SessionStateError):
            await controller.request_delete()

    async def test_delete_unknown_id(self, controller):
        with pytest.raises(EventNotCachedError):
            await controller.request_delete("missing")


class TestDraftIsolation:
    def test_unsaved_draft_does_not_leak_into_cache(self, controller, coordinator):
        controller.open_for_event("42")
        controller.change("title", "draft only")
        controller.cancel()
        assert coordinator.cache.require("42").title == "2024-06-24"

