"""Core data models for tracescope."""

from .events import Callback, Event, EventKind, ProcessRef

__all__ = [
    "Callback",
    "Event",
    "EventKind",
    "ProcessRef",
]
