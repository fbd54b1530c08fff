"""Event-store adapters."""

from timeblocks.stores.http import HttpEventStore
from timeblocks.stores.memory import InMemoryEventStore

__all__ = ["HttpEventStore", "InMemoryEventStore"]
