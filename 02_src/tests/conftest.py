"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def clock():
    """Deterministic clock: 1000, 1010, 1020, ..."""
    from tracescope.clock import ManualClock

    return ManualClock(current=1000, step=10)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from tracescope.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def store():
    """Create an in-memory event store."""
    from tracescope.event_store import EventStore

    return EventStore()


@pytest.fixture
def tracer():
    """Create a tracer controller."""
    from tracescope.tracer import TracerController

    return TracerController()


@pytest_asyncio.fixture
async def recorder(store, clock):
    """Create a recorder with a running worker."""
    from tracescope.recorder import Recorder

    rec = Recorder(store, clock=clock, queue_size=100)
    await rec.start()
    yield rec
    await rec.stop()


@pytest.fixture
def query_engine(store):
    """Create a query engine over the store."""
    from tracescope.query import QueryEngine

    return QueryEngine(store)


@pytest_asyncio.fixture
async def engine(clock):
    """Create and start an in-memory TraceEngine."""
    from tracescope.app import TraceEngine
    from tracescope.config import EngineConfig

    eng = TraceEngine(EngineConfig(queue_size=100), clock=clock)
    await eng.start()
    yield eng
    await eng.stop()
