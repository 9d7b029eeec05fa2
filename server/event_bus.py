"""
SSE-based EventBus implementation.

This module provides the server-side implementation of the EventBus protocol
using Server-Sent Events for process-wide updates (branches recorded, turns
completed).
"""

import asyncio
import logging
from typing import Any

from core import Event

logger = logging.getLogger(__name__)


class SSEEventBus:
    """
    EventBus implementation that broadcasts events to SSE subscribers.

    Each subscriber gets a queue that receives events. The global event
    endpoint consumes from these queues to stream events to clients.
    """

    def __init__(self) -> None:
        self.subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        data = event.model_dump(mode="json")
        logger.debug("Publishing %s to %d subscribers", event.type, len(self.subscribers))
        for queue in list(self.subscribers):
            await queue.put(data)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """
        Create a new subscription queue.

        Returns:
            A queue that will receive all published events
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.subscribers:
            self.subscribers.remove(queue)
