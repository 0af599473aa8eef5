"""TraceEngine bootstrap and lifecycle management."""

from typing import Any, Mapping, Protocol

from .clock import IClock, MonotonicClock
from .config import EngineConfig
from .event_store import EventStore
from .logging_config import get_logger
from .models import Event, EventKind, ProcessRef
from .process import Actor, Behaviour
from .query import QueryEngine
from .recorder import Delivery, Recorder, StateRecorder
from .storage import IStorage, Storage
from .tracer import TracerController

logger = get_logger(__name__)


class ITraceEngine(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Drop all recorded events."""
        ...


class TraceEngine:
    """Owns the store, recorder, tracer and query engine of one trace session."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        clock: IClock | None = None,
    ):
        self._config = config or EngineConfig()
        self._clock = clock or MonotonicClock()

        # Components (initialized in start())
        self._storage: IStorage | None = None
        self._store: EventStore | None = None
        self._recorder: Recorder | None = None
        self._tracer = TracerController()
        self._query: QueryEngine | None = None
        self._actors: list[Actor] = []

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting trace engine")

        # 1. Storage (optional, no dependencies)
        if self._config.db_path is not None:
            self._storage = Storage(self._config.db_path)
            await self._storage.init()
            logger.info("Storage initialized at %s", self._config.db_path)

        # 2. EventStore (depends on Storage)
        self._store = EventStore(
            storage=self._storage,
            max_events_per_process=self._config.max_events_per_process,
        )
        await self._store.load()

        # 3. Recorder (depends on EventStore + Clock)
        self._recorder = Recorder(
            self._store,
            clock=self._clock,
            queue_size=self._config.queue_size,
            max_snapshot_bytes=self._config.max_snapshot_bytes,
        )
        await self._recorder.start()

        # 4. QueryEngine (depends on EventStore)
        self._query = QueryEngine(self._store)
        logger.info("Trace engine started")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for actor in reversed(self._actors):
            await actor.stop()
        self._actors.clear()
        if self._recorder:
            await self._recorder.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")
        logger.info("Trace engine stopped")

    async def reset(self) -> None:
        """Flush pending captures, then clear the store."""
        await self.recorder.flush()
        await self.store.clear()

    def instrument(
        self,
        behaviour: Behaviour,
        *,
        module: str | None = None,
        delivery: Delivery = Delivery.SYNC,
        record_state: bool = True,
    ) -> StateRecorder:
        """Wrap a behaviour so its transitions are recorded."""
        return StateRecorder(
            behaviour,
            self.recorder,
            self._tracer,
            module=module,
            delivery=delivery,
            record_state=record_state,
        )

    async def spawn(
        self,
        behaviour: Behaviour,
        args: Any = None,
        *,
        name: str | None = None,
        instrument: bool = True,
        **instrument_options: Any,
    ) -> Actor:
        """Start an actor, instrumented by default. Stopped with the engine."""
        name = name or type(behaviour).__name__
        if instrument:
            behaviour = self.instrument(behaviour, **instrument_options)
        actor = Actor(behaviour, name=name)
        await actor.start(args)
        self._actors.append(actor)
        return actor

    # Capture
    async def capture_sync(self, kind: EventKind | str, payload: Mapping[str, Any]) -> int | None:
        return await self.recorder.capture_sync(kind, payload)

    def capture_async(self, kind: EventKind | str, payload: Mapping[str, Any]) -> bool:
        return self.recorder.capture_async(kind, payload)

    # Tracing
    def start_trace(self, module: str) -> None:
        self._tracer.start_trace(module)

    def stop_trace(self, module: str) -> None:
        self._tracer.stop_trace(module)

    # Queries
    async def events_for(self, process_ref: ProcessRef) -> list[Event]:
        return await self.store.events_for(process_ref)

    async def events_in_range(self, process_ref: ProcessRef, t0: int, t1: int) -> list[Event]:
        return await self.store.events_in_range(process_ref, t0, t1)

    async def state_as_of(self, process_ref: ProcessRef, timestamp: int) -> Any:
        return await self.query.state_as_of(process_ref, timestamp)

    async def query_events(self, **filters: Any) -> list[Event]:
        """Cross-process event search, see QueryEngine.query_events."""
        return await self.query.query_events(**filters)

    async def clear(self) -> None:
        await self.store.clear()

    def stats(self) -> dict[str, Any]:
        """Store and recorder counters."""
        return {
            "store": self.store.stats(),
            "recorder": self.recorder.stats(),
            "traced_modules": self._tracer.traced_modules(),
        }

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def started(self) -> bool:
        return self._store is not None

    @property
    def clock(self) -> IClock:
        return self._clock

    @property
    def tracer(self) -> TracerController:
        return self._tracer

    @property
    def store(self) -> EventStore:
        """Get event store instance."""
        if not self._store:
            raise RuntimeError("TraceEngine not started")
        return self._store

    @property
    def recorder(self) -> Recorder:
        """Get recorder instance."""
        if not self._recorder:
            raise RuntimeError("TraceEngine not started")
        return self._recorder

    @property
    def query(self) -> QueryEngine:
        """Get query engine instance."""
        if not self._query:
            raise RuntimeError("TraceEngine not started")
        return self._query
