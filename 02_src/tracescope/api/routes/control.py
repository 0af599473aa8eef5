"""Control API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter

from ...app import TraceEngine


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class TracesResponse(BaseModel):
    """Response model for the traced module list."""

    modules: list[str]


def create_control_router(engine: TraceEngine) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/clear", response_model=StatusResponse)
    async def clear_events() -> dict:
        """Drop every recorded event."""
        await engine.reset()
        return {"status": "ok"}

    @router.get("/stats")
    async def get_stats() -> dict[str, Any]:
        """Store and recorder counters."""
        return engine.stats()

    @router.get("/traces", response_model=TracesResponse)
    async def list_traces() -> dict:
        """Modules with call-level tracing enabled."""
        return {"modules": engine.tracer.traced_modules()}

    @router.post("/traces/{module}", response_model=TracesResponse)
    async def start_trace(module: str) -> dict:
        """Enable call-level tracing for a module."""
        engine.start_trace(module)
        return {"modules": engine.tracer.traced_modules()}

    @router.delete("/traces/{module}", response_model=TracesResponse)
    async def stop_trace(module: str) -> dict:
        """Disable call-level tracing for a module."""
        engine.stop_trace(module)
        return {"modules": engine.tracer.traced_modules()}

    return router
