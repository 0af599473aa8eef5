"""Event query API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from ...app import TraceEngine
from ...errors import InvalidRangeError
from ...models import Event
from ...query import History


class EventResponse(BaseModel):
    """Response model for a trace event."""

    id: int
    kind: str
    process_ref: str
    module: str
    callback: str | None
    message: Any = None
    response: Any = None
    state_snapshot: Any = None
    error: str | None = None
    timestamp: int


class StateResponse(BaseModel):
    """Response model for a time-travel lookup."""

    process_ref: str
    at: int
    found: bool
    status: str
    state: Any = None


def _jsonable(value: Any) -> Any:
    # Values JSON cannot hold (e.g. tuple dict keys) are shown as their repr
    try:
        return jsonable_encoder(value)
    except (TypeError, ValueError):
        return repr(value)


def _event_view(event: Event) -> dict[str, Any]:
    data = event.to_dict()
    for key in ("message", "response", "state_snapshot"):
        data[key] = _jsonable(data[key])
    return data


def create_events_router(engine: TraceEngine) -> APIRouter:
    """Create event query router."""
    router = APIRouter(prefix="/api", tags=["events"])

    @router.get("/events", response_model=list[EventResponse])
    async def query_events(
        kind: str | None = Query(None, description="Event kind"),
        module: str | None = Query(None, description="Module name"),
        process_ref: str | None = Query(None, description="Process ref"),
        t0: int | None = Query(None, description="Range start (inclusive)"),
        t1: int | None = Query(None, description="Range end (inclusive)"),
        limit: int | None = Query(None, ge=0, description="Maximum events returned"),
    ) -> list[dict]:
        """Events across processes matching every given filter."""
        try:
            events = await engine.query_events(
                kind=kind,
                module=module,
                process_ref=process_ref,
                t0=t0,
                t1=t1,
                limit=limit,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return [_event_view(e) for e in events]

    @router.get("/processes", response_model=list[str])
    async def list_processes() -> list[str]:
        """Processes with recorded events."""
        return engine.store.process_refs()

    @router.get("/processes/{process_ref}/events", response_model=list[EventResponse])
    async def get_events(
        process_ref: str,
        t0: int | None = Query(None, description="Range start (inclusive)"),
        t1: int | None = Query(None, description="Range end (inclusive)"),
    ) -> list[dict]:
        """All events of a process, or those within [t0, t1]."""
        if (t0 is None) != (t1 is None):
            raise HTTPException(status_code=400, detail="t0 and t1 must be given together")

        if t0 is None:
            events = await engine.events_for(process_ref)
        else:
            try:
                events = await engine.events_in_range(process_ref, t0, t1)
            except InvalidRangeError as e:
                raise HTTPException(status_code=400, detail=str(e))

        return [_event_view(e) for e in events]

    @router.get("/processes/{process_ref}/timeline", response_model=list[EventResponse])
    async def get_timeline(process_ref: str) -> list[dict]:
        """State-change events of a process."""
        events = await engine.query.state_timeline(process_ref)
        return [_event_view(e) for e in events]

    @router.get("/processes/{process_ref}/state", response_model=StateResponse)
    async def get_state(
        process_ref: str,
        at: int = Query(..., description="Timestamp to reconstruct state at"),
    ) -> dict:
        """State of a process as of a timestamp."""
        state = await engine.state_as_of(process_ref, at)
        if isinstance(state, History):
            return {
                "process_ref": process_ref,
                "at": at,
                "found": False,
                "status": state.value,
                "state": None,
            }
        return {
            "process_ref": process_ref,
            "at": at,
            "found": True,
            "status": "ok",
            "state": _jsonable(state),
        }

    return router
