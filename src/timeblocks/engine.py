"""Engine wiring: gate, cache/coordinator, edit session and aggregation.

``start`` kicks off the two independent asynchronous sources (widget
resources and the first data fetch) concurrently; the readiness gate makes
sure the widget is initialized once, after both, whichever finishes first.
"""

from __future__ import annotations

import asyncio
import logging

from timeblocks.aggregation import WeekGroup, aggregate
from timeblocks.config import EngineConfig
from timeblocks.coordinator import CrudCoordinator
from timeblocks.interfaces import CalendarWidget, EventStore, Notifier
from timeblocks.models import CalendarEvent
from timeblocks.readiness import ReadinessGate
from timeblocks.session import EditSessionController
from timeblocks.stores.http import HttpEventStore
from timeblocks.timenorm import TimeNormalizer
from timeblocks.widgets import HeadlessWidget, LoggingNotifier

logger = logging.getLogger(__name__)


class CalendarEngine:
    def __init__(
        self,
        store: EventStore,
        widget: CalendarWidget,
        notifier: Notifier,
        normalizer: TimeNormalizer,
    ) -> None:
        self._store = store
        self._widget = widget
        self.normalizer = normalizer
        self.gate = ReadinessGate(self._initialize_widget)
        self.coordinator = CrudCoordinator(store, widget, notifier, self.gate)
        self.session = EditSessionController(self.coordinator, normalizer, notifier)
        self._started = False

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        store: EventStore | None = None,
        widget: CalendarWidget | None = None,
        notifier: Notifier | None = None,
    ) -> CalendarEngine:
        """Build an engine; adapters default to HTTP store + headless widget."""
        return cls(
            store=store if store is not None else HttpEventStore.from_config(config.store),
            widget=widget if widget is not None else HeadlessWidget(),
            notifier=notifier if notifier is not None else LoggingNotifier(),
            normalizer=TimeNormalizer.capture(config.calendar.timezone),
        )

    async def __aenter__(self) -> CalendarEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def _initialize_widget(self) -> None:
        self._widget.initialize(self.coordinator.snapshot(), self.session.callbacks())

    async def _load_resources(self) -> None:
        try:
            await self._widget.load_resources()
        except Exception as exc:  # noqa: BLE001
            self.gate.mark_resources_failed(exc)
            return
        self.gate.mark_resources_loaded()
        self.gate.attempt_initialize()

    async def start(self) -> None:
        """Load widget resources and fetch events concurrently."""
        if self._started:
            raise RuntimeError("Calendar engine already started")
        self._started = True
        await asyncio.gather(self._load_resources(), self.coordinator.load())
        logger.info(
            "Calendar engine started (state=%s, events=%d)",
            self.gate.state,
            len(self.coordinator.cache),
        )

    def events(self) -> list[CalendarEvent]:
        """Cached events, absolute instants."""
        return self.coordinator.snapshot()

    def local_events(self) -> list[CalendarEvent]:
        return [self.normalizer.event_to_local(event) for event in self.coordinator.snapshot()]

    def summary(self) -> list[WeekGroup]:
        return aggregate(self.coordinator.snapshot(), self.normalizer)

    async def shutdown(self) -> None:
        await self.coordinator.aclose()
        await self._store.aclose()
