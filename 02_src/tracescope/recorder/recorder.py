"""Recorder: turns capture payloads into stored trace events.

Two entry points with different blocking contracts:

- ``capture_sync`` awaits the store append, so a slow store throttles the
  caller.
- ``capture_async`` never blocks. Events go into a bounded queue drained by
  one worker task. When the queue is full the newest event is dropped and
  counted.

Neither entry point raises. A state that cannot be deep-copied or encoded,
or whose encoding exceeds ``max_snapshot_bytes``, produces an error-marker
event; any other failure is logged and absorbed.
"""

import asyncio
import copy
from enum import Enum
from typing import Any, Mapping, Protocol

from ..clock import IClock, MonotonicClock
from ..codec import encoded_size
from ..config import DEFAULT_MAX_SNAPSHOT_BYTES, DEFAULT_QUEUE_SIZE
from ..event_store import IEventStore
from ..logging_config import get_logger
from ..models import Callback, Event, EventKind

logger = get_logger(__name__)


class Delivery(str, Enum):
    """Which capture entry point an instrumented process uses."""

    SYNC = "sync"
    ASYNC = "async"


class IRecorder(Protocol):
    """Instrumentation hook consumed by instrumented processes."""

    async def capture_sync(
        self, kind: EventKind | str, payload: Mapping[str, Any]
    ) -> int | None:
        """Capture and store an event, waiting for the append."""
        ...

    def capture_async(self, kind: EventKind | str, payload: Mapping[str, Any]) -> bool:
        """Enqueue an event without blocking. False if it was dropped."""
        ...


def _copy_payload(value: Any) -> Any:
    try:
        copied = copy.deepcopy(value)
        encoded_size(copied)
    except Exception:
        return repr(value)
    return copied


class Recorder:
    """Builds events from payloads and hands them to the event store."""

    def __init__(
        self,
        store: IEventStore,
        clock: IClock | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_snapshot_bytes: int = DEFAULT_MAX_SNAPSHOT_BYTES,
    ):
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        if max_snapshot_bytes < 0:
            raise ValueError("max_snapshot_bytes must be >= 0")
        self._max_snapshot_bytes = max_snapshot_bytes
        self._store = store
        self._clock = clock or MonotonicClock()
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task | None = None
        self._dropped = 0
        self._failed = 0

    @property
    def dropped(self) -> int:
        """Events dropped because the async queue was full."""
        return self._dropped

    @property
    def failed(self) -> int:
        """Captures absorbed because of an internal error."""
        return self._failed

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Start the worker draining the async queue."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._drain(), name="tracescope-recorder")
        logger.info("Recorder worker started")

    async def stop(self) -> None:
        """Drain pending events, then stop the worker."""
        await self.flush()
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            logger.info("Recorder worker stopped")

    async def flush(self) -> None:
        """Wait until every queued event has been appended."""
        if self.running:
            await self._queue.join()
            return

        # No worker: drain inline
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._append(event)
            finally:
                self._queue.task_done()

    async def capture(
        self,
        process_ref: str,
        module: str,
        kind: EventKind | str,
        state: Any,
        message: Any = None,
        response: Any = None,
        callback: Callback | str | None = None,
        timestamp: int | None = None,
    ) -> int | None:
        """Synchronous capture with explicit arguments."""
        payload = {
            "process_ref": process_ref,
            "module": module,
            "callback": callback,
            "message": message,
            "response": response,
            "state": state,
            "timestamp": timestamp,
        }
        return await self.capture_sync(kind, payload)

    async def capture_sync(
        self, kind: EventKind | str, payload: Mapping[str, Any]
    ) -> int | None:
        """Capture and store an event, waiting for the append.

        Returns the assigned id, or None if nothing was stored.
        """
        try:
            event = self._build_event(kind, payload)
        except Exception:
            self._failed += 1
            logger.error("Failed to build trace event", exc_info=True)
            return None
        return await self._append(event)

    def capture_async(self, kind: EventKind | str, payload: Mapping[str, Any]) -> bool:
        """Enqueue an event without blocking. False if it was not accepted."""
        try:
            event = self._build_event(kind, payload)
        except Exception:
            self._failed += 1
            logger.error("Failed to build trace event", exc_info=True)
            return False

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "Capture queue full, dropping event (%s dropped so far)",
                self._dropped,
                extra={"context": {"process_ref": event.process_ref}},
            )
            return False
        return True

    def stats(self) -> dict[str, int]:
        return {
            "queued": self._queue.qsize(),
            "dropped": self._dropped,
            "failed": self._failed,
        }

    def _build_event(self, kind: EventKind | str, payload: Mapping[str, Any]) -> Event:
        raw_callback = payload.get("callback")
        timestamp = payload.get("timestamp")
        if timestamp is None:
            timestamp = self._clock.now()

        snapshot, error = self._capture_state(payload.get("state"))
        if error is not None:
            logger.warning(
                "Recording error marker: %s",
                error,
                extra={
                    "context": {
                        "process_ref": payload.get("process_ref"),
                        "module": payload.get("module"),
                    }
                },
            )

        return Event(
            kind=EventKind(kind),
            process_ref=payload["process_ref"],
            module=payload["module"],
            timestamp=timestamp,
            state_snapshot=snapshot,
            callback=Callback(raw_callback) if raw_callback else None,
            message=_copy_payload(payload.get("message")),
            response=_copy_payload(payload.get("response")),
            error=error,
            generation=self._store.generation,
        )

    def _capture_state(self, state: Any) -> tuple[Any, str | None]:
        """Copy a state value. Returns (snapshot, None) or (None, error)."""
        try:
            snapshot = copy.deepcopy(state)
            size = encoded_size(snapshot)
        except Exception as e:
            return None, f"state capture failed: {type(e).__name__}: {e}"

        if self._max_snapshot_bytes and size > self._max_snapshot_bytes:
            return None, (
                f"state capture failed: snapshot is {size} bytes, "
                f"limit is {self._max_snapshot_bytes}"
            )
        return snapshot, None

    async def _append(self, event: Event) -> int | None:
        try:
            return await self._store.append(event)
        except Exception:
            self._failed += 1
            logger.error(
                "Failed to store trace event",
                exc_info=True,
                extra={"context": {"process_ref": event.process_ref}},
            )
            return None

    async def _drain(self) -> None:
        """Worker loop for async captures."""
        while True:
            event = await self._queue.get()
            try:
                await self._append(event)
            finally:
                self._queue.task_done()
