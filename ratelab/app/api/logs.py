"""Decision log endpoints: polling and server-sent events."""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from ratelab.app.api.dependencies import RegistryDep
from ratelab.app.services.decision_log import DecisionLog

router = APIRouter(prefix="/api/logs", tags=["logs"])

KEEPALIVE_SECONDS = 15.0


@router.get("")
async def get_logs(
    registry: RegistryDep,
    limit: Optional[int] = Query(None, ge=0),
) -> List[Dict[str, Any]]:
    """Most recent decisions, oldest first."""
    return [entry.to_dict() for entry in registry.decision_log.entries(limit)]


async def decision_events(
    decision_log: DecisionLog,
    queue: asyncio.Queue,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for published decisions until the client goes away."""
    try:
        while not await is_disconnected():
            try:
                result = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield f"event: decision\ndata: {json.dumps(result.to_dict())}\n\n"
    finally:
        decision_log.unsubscribe(queue)


@router.get("/stream")
async def stream_logs(request: Request, registry: RegistryDep) -> StreamingResponse:
    """Push every decision published from now on as a server-sent event."""
    decision_log = registry.decision_log
    queue = decision_log.subscribe()
    return StreamingResponse(
        decision_events(decision_log, queue, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
