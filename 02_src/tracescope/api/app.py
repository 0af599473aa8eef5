"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..app import TraceEngine
from .routes import control, events


def create_fastapi_app(engine: TraceEngine) -> FastAPI:
    """Create and configure FastAPI application over one engine.

    An engine that is not started yet is started and stopped with the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_engine = not engine.started
        if owns_engine:
            await engine.start()
        yield
        if owns_engine:
            await engine.stop()

    fastapi_app = FastAPI(
        title="tracescope API",
        description="Introspection and time-travel queries over recorded process events",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.include_router(events.create_events_router(engine))
    fastapi_app.include_router(control.create_control_router(engine))

    return fastapi_app
