"""
Global event SSE endpoint.
"""

import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ..state import AppContext, get_context


router = APIRouter()


@router.get("/global/event")
async def global_event(context: AppContext = Depends(get_context)) -> EventSourceResponse:
    """Subscribe to server-wide events via SSE."""
    event_bus = context.event_bus

    async def event_generator() -> AsyncGenerator[dict, None]:
        queue = event_bus.subscribe()
        try:
            while True:
                event = await queue.get()
                yield {"event": event["type"], "data": json.dumps(event)}
        finally:
            event_bus.unsubscribe(queue)

    return EventSourceResponse(event_generator())
