"""Tests for Storage."""

import threading
from unittest.mock import AsyncMock, Mock

import pytest

from sample_behaviours import Counter
from tracescope.app import TraceEngine
from tracescope.clock import ManualClock
from tracescope.config import EngineConfig
from tracescope.errors import SnapshotEncodingError
from tracescope.event_store import EventStore
from tracescope.models import Callback, Event, EventKind
from tracescope.query import CAPTURE_FAILED
from tracescope.storage import Storage


def sequenced(event_id, process_ref="p1", timestamp=None, **kwargs):
    return Event(
        kind=kwargs.pop("kind", EventKind.STATE_CHANGE),
        process_ref=process_ref,
        module="Counter",
        timestamp=timestamp if timestamp is not None else event_id * 10,
        id=event_id,
        **kwargs,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "events" in tables
            assert "process_sequences" in tables

    async def test_uninitialized_storage_raises(self):
        """Test that using storage before init() fails clearly."""
        st = Storage(":memory:")
        with pytest.raises(RuntimeError, match="Storage not initialized"):
            await st.get_events()


class TestStorageEvents:
    """Tests for event persistence."""

    async def test_save_and_get_event(self, storage):
        """Test that a saved event round-trips."""
        event = sequenced(
            1,
            kind=EventKind.CALL,
            callback=Callback.CALL,
            message="get",
            response=5,
            state_snapshot={"count": 5},
        )
        await storage.save_event(event)

        events = await storage.get_events()
        assert len(events) == 1
        assert events[0] == event

    async def test_values_round_trip_exactly(self, storage):
        """Test that tuples, int keys and sets survive storage unchanged."""
        state = {1: "a", (1, 2): "x", "tags": {"b", "c"}, "pair": (3, 4)}
        await storage.save_event(
            sequenced(1, message=("increment", 5), state_snapshot=state)
        )

        events = await storage.get_events()
        assert events[0].message == ("increment", 5)
        assert events[0].state_snapshot == state

    async def test_unencodable_value_raises_before_write(self, storage):
        """Test that an unencodable payload leaves no row behind."""
        with pytest.raises(SnapshotEncodingError):
            await storage.save_event(sequenced(1, state_snapshot=threading.Lock()))

        assert await storage.get_events() == []
        assert await storage.get_sequences() == {}

    async def test_error_marker_round_trip(self, storage):
        """Test that error markers keep their error."""
        await storage.save_event(sequenced(1, error="state capture failed"))

        events = await storage.get_events()
        assert events[0].is_error_marker
        assert events[0].state_snapshot is None

    async def test_events_ordered_by_process_and_id(self, storage):
        """Test ordering of get_events()."""
        await storage.save_event(sequenced(1, "b"))
        await storage.save_event(sequenced(1, "a"))
        await storage.save_event(sequenced(2, "a"))

        events = await storage.get_events()
        assert [(e.process_ref, e.id) for e in events] == [("a", 1), ("a", 2), ("b", 1)]

    async def test_sequences_track_last_id(self, storage):
        """Test that save_event advances the process sequence."""
        await storage.save_event(sequenced(1, "a"))
        await storage.save_event(sequenced(2, "a"))
        await storage.save_event(sequenced(1, "b"))

        assert await storage.get_sequences() == {"a": 2, "b": 1}

    async def test_delete_events_through(self, storage):
        """Test retention deletes."""
        for i in range(1, 5):
            await storage.save_event(sequenced(i))

        await storage.delete_events_through("p1", 2)

        events = await storage.get_events()
        assert [e.id for e in events] == [3, 4]

    async def test_clear_keeps_sequences(self, storage):
        """Test that clear() removes events only."""
        await storage.save_event(sequenced(1))
        await storage.save_event(sequenced(2))

        await storage.clear()

        assert await storage.get_events() == []
        assert await storage.get_sequences() == {"p1": 2}


class TestEventStorePersistence:
    """Tests for EventStore write-through and reload."""

    async def test_append_writes_through(self, storage):
        """Test that appended events reach storage."""
        st = EventStore(storage=storage)
        await st.append(sequenced(0, timestamp=10, state_snapshot={"count": 1}))

        events = await storage.get_events()
        assert [e.id for e in events] == [1]

    async def test_eviction_deletes_from_storage(self, storage):
        """Test that retention applies to persisted events."""
        st = EventStore(storage=storage, max_events_per_process=2)
        for ts in (10, 20, 30):
            await st.append(sequenced(0, timestamp=ts))

        events = await storage.get_events()
        assert [e.id for e in events] == [2, 3]

    async def test_load_restores_events_and_sequences(self, storage):
        """Test that a fresh store picks up persisted history."""
        first = EventStore(storage=storage)
        await first.append(sequenced(0, timestamp=10, state_snapshot="a"))
        await first.append(sequenced(0, timestamp=20, state_snapshot="b"))
        await first.clear()
        await first.append(
            sequenced(0, timestamp=30, state_snapshot="c", generation=first.generation)
        )

        second = EventStore(storage=storage)
        await second.load()

        events = await second.events_for("p1")
        assert [(e.id, e.state_snapshot) for e in events] == [(3, "c")]
        assert await second.append(sequenced(0, timestamp=40)) == 4

    async def test_engine_restart_keeps_history(self, tmp_path):
        """Test persistence across engine restarts with a database file."""
        config = EngineConfig(db_path=tmp_path / "traces.db")

        engine = TraceEngine(config, clock=ManualClock(current=100, step=10))
        await engine.start()
        actor = await engine.spawn(Counter(), 0)
        await actor.call(("set", 4))
        pid = actor.pid
        await engine.stop()

        restarted = TraceEngine(config, clock=ManualClock(current=500, step=10))
        await restarted.start()
        try:
            assert await restarted.state_as_of(pid, 110) == {"count": 4}
            assert await restarted.state_as_of(pid, 105) == {"count": 0}
            # init, set, terminate
            assert restarted.store.count(pid) == 3
        finally:
            await restarted.stop()

    async def test_restart_preserves_captured_state(self, tmp_path):
        """Test that state_as_of answers the same before and after a restart."""
        config = EngineConfig(db_path=tmp_path / "traces.db")
        state = {1: "a", (1, 2): "x", "items": (1, 2)}
        payload = {"process_ref": "p1", "module": "Counter", "state": state}

        engine = TraceEngine(config, clock=ManualClock(current=100))
        await engine.start()
        await engine.capture_sync(EventKind.STATE_CHANGE, payload)
        before = await engine.state_as_of("p1", 100)
        await engine.stop()

        restarted = TraceEngine(config, clock=ManualClock(current=500))
        await restarted.start()
        try:
            after = await restarted.state_as_of("p1", 100)
        finally:
            await restarted.stop()

        assert before == state
        assert after == before


class TestCaptureEncoding:
    """Tests for states that cannot be persisted as captured."""

    async def test_unencodable_state_recorded_as_marker(self, tmp_path):
        """Test that a copyable but unencodable state becomes an error marker."""
        engine = TraceEngine(
            EngineConfig(db_path=tmp_path / "traces.db"), clock=ManualClock(current=100)
        )
        await engine.start()
        try:
            first = await engine.capture_sync(
                EventKind.STATE_CHANGE,
                {"process_ref": "p1", "module": "Counter", "state": {"count": 1}},
            )
            second = await engine.capture_sync(
                EventKind.STATE_CHANGE,
                {"process_ref": "p1", "module": "Counter", "state": {"fn": lambda: 1}},
            )

            assert (first, second) == (1, 2)
            events = await engine.events_for("p1")
            assert events[1].is_error_marker
            assert events[1].state_snapshot is None
            assert engine.recorder.failed == 0
            assert await engine.state_as_of("p1", 1000) is CAPTURE_FAILED

            persisted = await engine._storage.get_events()
            assert [e.is_error_marker for e in persisted] == [False, True]
        finally:
            await engine.stop()

    async def test_store_stores_marker_when_storage_cannot_encode(self, storage):
        """Test the store-level fallback for events appended directly."""
        st = EventStore(storage=storage)

        event_id = await st.append(
            sequenced(0, timestamp=10, state_snapshot=threading.Lock(), message="m")
        )

        assert event_id == 1
        events = await st.events_for("p1")
        assert events[0].is_error_marker
        assert events[0].message == repr("m")
        persisted = await storage.get_events()
        assert persisted[0].id == 1
        assert persisted[0].is_error_marker

    async def test_unencodable_message_stored_as_repr(self, tmp_path):
        """Test that an unencodable message keeps the state snapshot."""
        engine = TraceEngine(EngineConfig(db_path=tmp_path / "traces.db"))
        await engine.start()
        try:
            def message():
                return None

            await engine.capture_sync(
                EventKind.CAST,
                {"process_ref": "p1", "module": "Counter", "state": 1, "message": message},
            )

            events = await engine._storage.get_events()
            assert events[0].message == repr(message)
            assert events[0].state_snapshot == 1
            assert not events[0].is_error_marker
        finally:
            await engine.stop()


class TestEvictionFailure:
    """Tests for storage failures during retention."""

    async def test_failed_eviction_keeps_event_and_retries(self):
        """Test that a failing delete does not fail the append."""
        backing = Mock()
        backing.save_event = AsyncMock()
        backing.delete_events_through = AsyncMock(side_effect=RuntimeError("locked"))
        st = EventStore(storage=backing, max_events_per_process=2)

        for ts in (10, 20, 30):
            assert await st.append(sequenced(0, timestamp=ts)) is not None

        assert st.count("p1") == 3
        assert st.stats()["evicted"] == 0

        backing.delete_events_through = AsyncMock()
        assert await st.append(sequenced(0, timestamp=40)) == 4

        backing.delete_events_through.assert_awaited_once_with("p1", 2)
        assert [e.id for e in await st.events_for("p1")] == [3, 4]
