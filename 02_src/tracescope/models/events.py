"""Trace event data models."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


ProcessRef = str


class EventKind(str, Enum):
    """Tag of a captured event, mirrors the handler type that produced it."""

    STATE_CHANGE = "state-change"
    CALL = "call"
    CAST = "cast"
    INFO = "info"


class Callback(str, Enum):
    """Behaviour entry point that triggered a transition."""

    INIT = "init"
    CALL = "call"
    CAST = "cast"
    INFO = "info"
    TERMINATE = "terminate"


@dataclass(frozen=True)
class Event:
    """One captured state/message record.

    ``id`` is 0 until the store assigns the per-process sequence number.
    Error-marker events carry ``error`` and no snapshot.
    """

    kind: EventKind
    process_ref: ProcessRef
    module: str
    timestamp: int
    state_snapshot: Any = None
    callback: Callback | None = None
    message: Any = None
    response: Any = None
    error: str | None = None
    generation: int = 0
    id: int = 0

    @property
    def is_error_marker(self) -> bool:
        return self.error is not None

    def with_sequence(self, event_id: int, timestamp: int | None = None) -> "Event":
        """Copy of this event stamped with a store-assigned id."""
        if timestamp is None:
            return replace(self, id=event_id)
        return replace(self, id=event_id, timestamp=timestamp)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict view for logging and the HTTP API."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "process_ref": self.process_ref,
            "module": self.module,
            "callback": self.callback.value if self.callback else None,
            "message": self.message,
            "response": self.response,
            "state_snapshot": self.state_snapshot,
            "error": self.error,
            "timestamp": self.timestamp,
        }
