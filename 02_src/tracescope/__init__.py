"""tracescope: event capture and time-travel queries for asyncio actors."""

from .app import ITraceEngine, TraceEngine
from .clock import IClock, ManualClock, MonotonicClock
from .config import EngineConfig
from .errors import (
    ActorNotRunningError,
    InvalidRangeError,
    SnapshotEncodingError,
    TraceEngineError,
)
from .event_store import EventStore, IEventStore
from .models import Callback, Event, EventKind, ProcessRef
from .process import Actor, Behaviour, current_process, self_ref
from .query import CAPTURE_FAILED, NO_HISTORY, QueryEngine
from .recorder import Delivery, IRecorder, Recorder, StateRecorder, module_name
from .storage import IStorage, Storage
from .tracer import ITracer, TracerController

__all__ = [
    # Engine
    "TraceEngine",
    "ITraceEngine",
    "EngineConfig",
    # Models
    "Event",
    "EventKind",
    "Callback",
    "ProcessRef",
    # Errors
    "TraceEngineError",
    "InvalidRangeError",
    "ActorNotRunningError",
    "SnapshotEncodingError",
    # Components
    "IClock",
    "MonotonicClock",
    "ManualClock",
    "IStorage",
    "Storage",
    "IEventStore",
    "EventStore",
    "IRecorder",
    "Recorder",
    "Delivery",
    "StateRecorder",
    "module_name",
    "ITracer",
    "TracerController",
    "QueryEngine",
    "NO_HISTORY",
    "CAPTURE_FAILED",
    # Actors
    "Actor",
    "Behaviour",
    "current_process",
    "self_ref",
]
