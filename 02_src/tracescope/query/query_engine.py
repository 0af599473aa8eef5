"""Time-travel queries over the event store.

All lookups bisect the per-process timestamp index, which is kept in id
order by the store. The engine never mutates the store.
"""

import bisect
import copy
from enum import Enum
from typing import Any

from ..errors import InvalidRangeError
from ..event_store import IEventStore
from ..logging_config import get_logger
from ..models import Event, EventKind, ProcessRef

logger = get_logger(__name__)


class History(Enum):
    """Result markers for instants without a usable recorded state."""

    NONE = "no_history"
    CAPTURE_FAILED = "capture_failed"

    def __bool__(self) -> bool:
        return False


NO_HISTORY = History.NONE
CAPTURE_FAILED = History.CAPTURE_FAILED


class QueryEngine:
    """Reconstructs historical process state from recorded events."""

    def __init__(self, store: IEventStore):
        self._store = store

    async def state_as_of(self, process_ref: ProcessRef, timestamp: int) -> Any:
        """State of a process as of ``timestamp``.

        Selects the latest event with timestamp <= ``timestamp`` (greatest
        id on ties) and returns a copy of its snapshot. Returns NO_HISTORY
        when nothing was recorded up to that instant and CAPTURE_FAILED when
        the selected event is an error marker.
        """
        event = self._select(process_ref, timestamp)
        if event is None:
            return NO_HISTORY
        if event.is_error_marker:
            return CAPTURE_FAILED
        return copy.deepcopy(event.state_snapshot)

    async def last_captured_state(
        self, process_ref: ProcessRef, timestamp: int
    ) -> tuple[Event | None, Any]:
        """Closest snapshot at or before ``timestamp`` that was captured.

        Skips error markers. Returns (event, state), or (None, NO_HISTORY)
        when there is no such snapshot.
        """
        log = self._store.log_for(process_ref)
        if not log:
            return None, NO_HISTORY

        index = bisect.bisect_right(log.timestamps, timestamp) - 1
        skipped = 0
        while index >= 0 and log.events[index].is_error_marker:
            index -= 1
            skipped += 1
        if skipped:
            logger.info(
                "Skipped %s error markers looking up state as of %s",
                skipped,
                timestamp,
                extra={"context": {"process_ref": process_ref}},
            )
        if index < 0:
            return None, NO_HISTORY
        event = log.events[index]
        return event, copy.deepcopy(event.state_snapshot)

    def _select(self, process_ref: ProcessRef, timestamp: int) -> Event | None:
        log = self._store.log_for(process_ref)
        if not log:
            return None
        index = bisect.bisect_right(log.timestamps, timestamp) - 1
        return log.events[index] if index >= 0 else None

    async def state_timeline(self, process_ref: ProcessRef) -> list[Event]:
        """State-change events of a process in order."""
        events = await self._store.events_for(process_ref)
        return [e for e in events if e.kind is EventKind.STATE_CHANGE]

    async def event_before(self, process_ref: ProcessRef, timestamp: int) -> Event | None:
        """Latest event strictly before ``timestamp``."""
        log = self._store.log_for(process_ref)
        if not log:
            return None
        index = bisect.bisect_left(log.timestamps, timestamp) - 1
        return log.events[index] if index >= 0 else None

    async def event_after(self, process_ref: ProcessRef, timestamp: int) -> Event | None:
        """Earliest event strictly after ``timestamp``."""
        log = self._store.log_for(process_ref)
        if not log:
            return None
        index = bisect.bisect_right(log.timestamps, timestamp)
        return log.events[index] if index < len(log) else None

    async def events_around(
        self, process_ref: ProcessRef, timestamp: int, window: int
    ) -> list[Event]:
        """Events within ``timestamp - window`` .. ``timestamp + window``."""
        if window < 0:
            raise ValueError("window must be >= 0")
        return await self._store.events_in_range(
            process_ref, timestamp - window, timestamp + window
        )

    async def query_events(
        self,
        *,
        kind: EventKind | str | None = None,
        module: str | None = None,
        process_ref: ProcessRef | None = None,
        t0: int | None = None,
        t1: int | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """Events across processes matching every given filter.

        Time bounds are inclusive and either may be omitted. Results are
        ordered by timestamp, then process ref, then id.

        Args:
            kind: Only events of this kind
            module: Only events recorded for this module
            process_ref: Only events of this process
            t0: Lower timestamp bound
            t1: Upper timestamp bound
            limit: Maximum number of events returned (earliest first)
        """
        if t0 is not None and t1 is not None and t0 > t1:
            raise InvalidRangeError(t0, t1)
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        kind = EventKind(kind) if kind is not None else None

        refs = [process_ref] if process_ref is not None else self._store.process_refs()
        matches: list[Event] = []
        for ref in refs:
            log = self._store.log_for(ref)
            if not log:
                continue
            low = bisect.bisect_left(log.timestamps, t0) if t0 is not None else 0
            high = bisect.bisect_right(log.timestamps, t1) if t1 is not None else len(log)
            for event in log.events[low:high]:
                if kind is not None and event.kind is not kind:
                    continue
                if module is not None and event.module != module:
                    continue
                matches.append(event)

        matches.sort(key=lambda e: (e.timestamp, e.process_ref, e.id))
        return matches[:limit] if limit is not None else matches

    async def diff(self, process_ref: ProcessRef, t0: int, t1: int) -> dict[str, Any]:
        """Compare the state of a process at two instants."""
        if t0 > t1:
            raise InvalidRangeError(t0, t1)

        before = await self.state_as_of(process_ref, t0)
        after = await self.state_as_of(process_ref, t1)
        changes = await self._store.events_in_range(process_ref, t0 + 1, t1) if t0 < t1 else []
        return {
            "before": before,
            "after": after,
            "changed": before != after,
            "events": changes,
        }
