"""EventStore module."""

from .event_store import EventStore, IEventStore, ProcessLog

__all__ = ["EventStore", "IEventStore", "ProcessLog"]
