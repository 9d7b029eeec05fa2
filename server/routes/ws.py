"""
WebSocket endpoint.

Each inbound frame is handled in its own task so that an interrupt can reach
a session while a resume or branch on the same socket is still running.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..state import context_of


logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_route(websocket: WebSocket) -> None:
    context = context_of(websocket.app)
    handler = context.handler

    await websocket.accept()
    await handler.on_open(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            context.registry.track(handler.on_message(websocket, raw))
    except WebSocketDisconnect as e:
        logger.debug("WebSocket closed (code=%s)", e.code)
    finally:
        await handler.on_close(websocket)
