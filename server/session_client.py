"""
WebSocket observer.

Adapts one WebSocket connection to the SessionClient protocol. Session
notifications are delivered synchronously, so frames are queued and written
by a single task, which keeps them in delivery order.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import WebSocket

from core.models import MessageAdded, SessionNotification, SessionStateChanged

logger = logging.getLogger(__name__)

TurnCompleteCallback = Callable[["WebSocketSessionClient", str | None], Awaitable[None]]


class WebSocketSessionClient:
    """Session observer writing JSON frames to a WebSocket."""

    def __init__(self, websocket: WebSocket, on_turn_complete: TurnCompleteCallback | None = None):
        self.session_id: str | None = None
        self._websocket = websocket
        self._on_turn_complete = on_turn_complete
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._callbacks: set[asyncio.Task[None]] = set()
        self._closed = False

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def send(self, payload: dict[str, Any]) -> None:
        """Queue a frame for the socket. Dropped once the client is closed."""
        if self._closed:
            logger.debug("Dropping %s frame for closed client", payload.get("type"))
            return
        self._queue.put_nowait(payload)

    def receive_session_message(self, notification: SessionNotification) -> None:
        payload = notification.model_dump(mode="json", exclude_none=True)
        if isinstance(notification, SessionStateChanged) and "error" in notification.state.model_fields_set:
            # An explicit null tells observers the previous error is cleared
            payload["state"]["error"] = notification.state.error
        self.send(payload)

        if (
            self._on_turn_complete is not None
            and isinstance(notification, MessageAdded)
            and notification.message.type == "result"
        ):
            task = asyncio.create_task(self._on_turn_complete(self, notification.sessionId))
            self._callbacks.add(task)
            task.add_done_callback(self._callbacks.discard)

    async def _write_loop(self) -> None:
        while True:
            payload = await self._queue.get()
            if payload is None:
                return
            try:
                await self._websocket.send_json(payload)
            except Exception as e:
                logger.debug("WebSocket write failed, stopping writer: %s", e)
                self._closed = True
                return

    async def close(self) -> None:
        """Flush queued frames and stop the writer."""
        if self._closed and self._writer is None:
            return
        self._closed = True
        self._queue.put_nowait(None)
        if self._writer is not None:
            await self._writer
            self._writer = None
