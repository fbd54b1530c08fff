"""Readiness gate: initialize the calendar widget exactly once.

Two asynchronous sources must both complete before the widget can be built:
loading the widget's own resources, and the first successful data fetch.
They can finish in either order, and the data side may report more than once
(every refresh re-runs the fetch). The gate is the only place that decides
whether initialization may run now.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

logger = logging.getLogger(__name__)


class ReadinessState(StrEnum):
    init = "init"
    resources_only = "resources_only"
    data_only = "data_only"
    ready = "ready"


class ReadinessGate:
    """Monotonic two-flag state machine guarding widget initialization.

    ``initializer`` is called with no arguments the first time
    :meth:`attempt_initialize` observes both flags set. A resource-load
    failure leaves the gate permanently short of ``ready``.
    """

    def __init__(self, initializer: Callable[[], None]) -> None:
        self._initializer = initializer
        self._resources_loaded = False
        self._data_loaded = False
        self._initialized = False
        self._failure: BaseException | None = None

    @property
    def resources_loaded(self) -> bool:
        return self._resources_loaded

    @property
    def data_loaded(self) -> bool:
        return self._data_loaded

    @property
    def ready(self) -> bool:
        return self._resources_loaded and self._data_loaded

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def failed(self) -> bool:
        return self._failure is not None

    @property
    def failure(self) -> BaseException | None:
        return self._failure

    @property
    def state(self) -> ReadinessState:
        if self.ready:
            return ReadinessState.ready
        if self._resources_loaded:
            return ReadinessState.resources_only
        if self._data_loaded:
            return ReadinessState.data_only
        return ReadinessState.init

    def mark_resources_loaded(self) -> None:
        if self._resources_loaded:
            return
        if self._failure is not None:
            logger.warning("Ignoring resources-loaded signal after a resource-load failure")
            return
        self._resources_loaded = True
        logger.debug("Readiness gate: resources loaded (state=%s)", self.state)

    def mark_data_loaded(self) -> None:
        if self._data_loaded:
            return
        self._data_loaded = True
        logger.debug("Readiness gate: data loaded (state=%s)", self.state)

    def mark_resources_failed(self, exc: BaseException) -> None:
        """Record a resource-load failure; the calendar stays uninitialized."""
        if self._resources_loaded or self._failure is not None:
            return
        self._failure = exc
        logger.error(
            "Calendar resources failed to load; calendar will not be initialized: %s",
            exc,
            exc_info=exc,
        )

    def attempt_initialize(self) -> bool:
        """Run the initializer if both flags are set and it has not run yet.

        Returns ``True`` only for the call that actually initialized.
        """
        if not self.ready or self._initialized:
            return False
        self._initialized = True
        logger.info("Readiness gate open; initializing calendar widget")
        self._initializer()
        return True
