"""Exceptions raised by the trace engine.

Capture-side failures are never raised to instrumented processes; these
types only surface from queries and from the actor runtime API.
"""


class TraceEngineError(Exception):
    """Base class for trace engine errors."""


class InvalidRangeError(TraceEngineError, ValueError):
    """A time range query was given t0 > t1."""

    def __init__(self, t0: int, t1: int):
        super().__init__(f"Invalid time range: t0={t0} is after t1={t1}")
        self.t0 = t0
        self.t1 = t1


class ActorNotRunningError(TraceEngineError, RuntimeError):
    """A message was sent to an actor that is not running."""


class SnapshotEncodingError(TraceEngineError, ValueError):
    """A captured value could not be encoded for persistence."""
