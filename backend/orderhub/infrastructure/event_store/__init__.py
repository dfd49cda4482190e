"""Event store infrastructure."""

from .interfaces import EventStoreBackend
from .mongo import EventStore

__all__ = ["EventStoreBackend", "EventStore"]
