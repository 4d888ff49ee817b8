"""State store API: snapshots and a live change stream (server-sent events)."""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from pagebrief.api.deps import get_orchestrator, get_settings
from pagebrief.config import Settings
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.storage.state_store import StateStore

router = APIRouter()


def format_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


async def state_events(
    store: StateStore,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """Yield a ``snapshot`` event, then one ``change`` event per committed merge."""
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = store.subscribe(queue.put_nowait)
    try:
        yield format_event("snapshot", store.read_all())
        while True:
            try:
                change = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield ": keepalive\n\n"
                continue
            yield format_event("change", change.to_dict())
    finally:
        unsubscribe()


@router.get("/state")
async def get_state(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    """Full flat snapshot of the state store."""
    return orchestrator.store.read_all()


@router.get("/state/events")
async def stream_state(
    request: Request,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    return StreamingResponse(
        state_events(orchestrator.store, request.is_disconnected, settings.sse_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
