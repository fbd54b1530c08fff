"""Error hierarchy shared by the engine, stores and widget adapters."""

from __future__ import annotations

_MAX_MESSAGE_CHARS = 200


def sanitize_message(message: str) -> str:
    """Collapse whitespace and truncate a server-provided message."""
    return " ".join(message.split())[:_MAX_MESSAGE_CHARS]


class EventStoreError(RuntimeError):
    """Base error raised by remote event-store adapters.

    ``message`` is safe to show to the user as-is.
    """

    def __init__(self, message: str) -> None:
        self.message = sanitize_message(message) or "Event store request failed"
        super().__init__(self.message)


class EventStoreRequestError(EventStoreError):
    """Raised when the remote store answers with a non-2xx status."""

    def __init__(self, *, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.args = (f"Event store request failed ({status_code}): {self.message}",)


class EventNotCachedError(LookupError):
    """Raised when an update or delete targets an id the cache does not hold."""

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event '{event_id}' is not in the event cache")


class ResourceLoadError(RuntimeError):
    """Raised by widget adapters when their scripts/styles cannot be loaded."""


class SessionStateError(RuntimeError):
    """Raised when the edit session is used out of order."""
