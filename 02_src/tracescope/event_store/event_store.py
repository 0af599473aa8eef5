"""Append-only in-memory event store.

Events are kept per process in id order with a parallel list of timestamps
for bisect lookups. Every mutation (append, clear, eviction) goes through a
single asyncio.Lock. Reads never await while touching the indexes, so on a
single event loop a reader always sees the store as of one serialization
point.

Retention: each process keeps at most ``max_events_per_process`` events
(0 disables the cap). When the cap is exceeded the oldest events of that
process are evicted. Sequence numbers are never reused, neither after
eviction nor after clear().
"""

import asyncio
import bisect
from dataclasses import dataclass, field, replace
from typing import Protocol

from ..config import DEFAULT_MAX_EVENTS_PER_PROCESS
from ..errors import InvalidRangeError, SnapshotEncodingError
from ..logging_config import get_logger
from ..models import Event, ProcessRef
from ..storage import IStorage

logger = get_logger(__name__)


def _error_marker(event: Event, error: str) -> Event:
    return replace(
        event,
        state_snapshot=None,
        message=repr(event.message) if event.message is not None else None,
        response=repr(event.response) if event.response is not None else None,
        error=error,
    )


@dataclass
class ProcessLog:
    """Events of one process, id-ascending, with a timestamp index."""

    events: list[Event] = field(default_factory=list)
    timestamps: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.events)


class IEventStore(Protocol):
    """Ordered, queryable holding area for trace events."""

    @property
    def generation(self) -> int:
        """Epoch bumped by every clear()."""
        ...

    async def append(self, event: Event) -> int | None:
        """Store an event and return its assigned id (None if rejected)."""
        ...

    async def events_for(self, process_ref: ProcessRef) -> list[Event]:
        """All events of a process in id order."""
        ...

    async def events_in_range(
        self, process_ref: ProcessRef, t0: int, t1: int
    ) -> list[Event]:
        """Events of a process with t0 <= timestamp <= t1."""
        ...

    async def clear(self) -> None:
        """Atomically remove every event."""
        ...

    def log_for(self, process_ref: ProcessRef) -> ProcessLog | None:
        """Read-only view of a process log for index searches."""
        ...

    def process_refs(self) -> list[ProcessRef]:
        """Processes that currently have stored events."""
        ...


class EventStore:
    """In-memory event store with optional write-through persistence."""

    def __init__(
        self,
        storage: IStorage | None = None,
        max_events_per_process: int = DEFAULT_MAX_EVENTS_PER_PROCESS,
    ):
        if max_events_per_process < 0:
            raise ValueError("max_events_per_process must be >= 0")
        self._storage = storage
        self._max_events = max_events_per_process
        self._logs: dict[ProcessRef, ProcessLog] = {}
        # Last assigned id per process; survives clear() and eviction
        self._sequences: dict[ProcessRef, int] = {}
        self._generation = 0
        self._lock = asyncio.Lock()

        self._appended = 0
        self._evicted = 0
        self._rejected = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self) -> None:
        """Restore events and sequence counters from storage."""
        if self._storage is None:
            return

        async with self._lock:
            events = await self._storage.get_events()
            sequences = await self._storage.get_sequences()

            self._logs.clear()
            for event in events:
                log = self._logs.setdefault(event.process_ref, ProcessLog())
                log.events.append(event)
                log.timestamps.append(event.timestamp)
            self._sequences = dict(sequences)
            for process_ref, log in self._logs.items():
                last_id = log.events[-1].id
                if self._sequences.get(process_ref, 0) < last_id:
                    self._sequences[process_ref] = last_id

        logger.info(
            "Loaded %s events for %s processes from storage",
            len(events),
            len(self._logs),
        )

    async def append(self, event: Event) -> int | None:
        """Store an event and return its assigned id.

        Events captured under an older generation (before a clear()) are
        dropped and None is returned. A timestamp lower than the last one
        stored for the process is raised to that value so that id order and
        timestamp order stay identical.
        """
        async with self._lock:
            if event.generation < self._generation:
                self._rejected += 1
                logger.debug(
                    "Dropping event captured before clear",
                    extra={"context": {"process_ref": event.process_ref}},
                )
                return None

            process_ref = event.process_ref
            log = self._logs.get(process_ref)
            timestamp = event.timestamp
            if log and timestamp < log.timestamps[-1]:
                logger.warning(
                    "Timestamp %s regressed below %s, clamping",
                    timestamp,
                    log.timestamps[-1],
                    extra={"context": {"process_ref": process_ref}},
                )
                timestamp = log.timestamps[-1]

            event_id = self._sequences.get(process_ref, 0) + 1
            stored = event.with_sequence(event_id, timestamp)

            # Persist first so a storage failure leaves nothing visible
            if self._storage is not None:
                try:
                    await self._storage.save_event(stored)
                except SnapshotEncodingError as e:
                    stored = _error_marker(stored, f"state capture failed: {e}")
                    logger.warning(
                        "Event %s not encodable, storing error marker: %s",
                        event_id,
                        e,
                        extra={
                            "context": {"process_ref": process_ref, "event_id": event_id}
                        },
                    )
                    await self._storage.save_event(stored)

            if log is None:
                log = self._logs[process_ref] = ProcessLog()
            log.events.append(stored)
            log.timestamps.append(timestamp)
            self._sequences[process_ref] = event_id
            self._appended += 1

            if self._max_events and len(log) > self._max_events:
                await self._evict(process_ref, log)

            return event_id

    async def _evict(self, process_ref: ProcessRef, log: ProcessLog) -> None:
        """Drop the oldest events of a process down to the cap.

        Storage is trimmed first. If that fails the log stays over the cap
        and the next append retries.
        """
        overflow = len(log) - self._max_events
        last_evicted_id = log.events[overflow - 1].id
        if self._storage is not None:
            try:
                await self._storage.delete_events_through(process_ref, last_evicted_id)
            except Exception:
                logger.error(
                    "Failed to evict events through %s",
                    last_evicted_id,
                    exc_info=True,
                    extra={"context": {"process_ref": process_ref}},
                )
                return
        del log.events[:overflow]
        del log.timestamps[:overflow]
        self._evicted += overflow

    async def events_for(self, process_ref: ProcessRef) -> list[Event]:
        """All events of a process in id order (empty if unknown)."""
        log = self._logs.get(process_ref)
        return list(log.events) if log else []

    async def events_in_range(
        self, process_ref: ProcessRef, t0: int, t1: int
    ) -> list[Event]:
        """Events of a process with t0 <= timestamp <= t1."""
        if t0 > t1:
            raise InvalidRangeError(t0, t1)

        log = self._logs.get(process_ref)
        if not log:
            return []

        low = bisect.bisect_left(log.timestamps, t0)
        high = bisect.bisect_right(log.timestamps, t1)
        return log.events[low:high]

    async def clear(self) -> None:
        """Remove every event and start a new generation."""
        async with self._lock:
            if self._storage is not None:
                await self._storage.clear()
            self._logs.clear()
            self._generation += 1
            logger.info("Event store cleared, generation %s", self._generation)

    def log_for(self, process_ref: ProcessRef) -> ProcessLog | None:
        """Read-only view of a process log for index searches.

        Callers must not await while holding on to the returned object.
        """
        return self._logs.get(process_ref)

    def process_refs(self) -> list[ProcessRef]:
        """Processes that currently have stored events."""
        return [ref for ref, log in self._logs.items() if log.events]

    def count(self, process_ref: ProcessRef | None = None) -> int:
        """Number of stored events, for one process or overall."""
        if process_ref is not None:
            log = self._logs.get(process_ref)
            return len(log) if log else 0
        return sum(len(log) for log in self._logs.values())

    def stats(self) -> dict[str, int]:
        """Counters for observability."""
        return {
            "stored": self.count(),
            "appended": self._appended,
            "evicted": self._evicted,
            "rejected": self._rejected,
            "generation": self._generation,
            "max_events_per_process": self._max_events,
        }
