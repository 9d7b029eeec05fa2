"""
Server-wide events and the EventBus protocol.

Session notifications go to a session's own observers; these events are for
anyone watching the whole process (the SSE global stream).
"""

from typing import Any, Protocol

from pydantic import BaseModel

from .models import BranchRecord

SESSION_BRANCHED = "session.branched"
SESSION_TURN_COMPLETED = "session.turn_completed"


class Event(BaseModel):
    """Domain event that can be published to subscribers."""

    type: str
    properties: dict[str, Any]


def branched_event(record: BranchRecord) -> Event:
    return Event(type=SESSION_BRANCHED, properties=record.model_dump(mode="json"))


def turn_completed_event(session_id: str | None, summary: str | None = None) -> Event:
    return Event(
        type=SESSION_TURN_COMPLETED,
        properties={"sessionId": session_id, "summary": summary},
    )


class EventBus(Protocol):
    """Abstract interface for publishing events."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        ...


class NullEventBus:
    """No-op EventBus implementation for testing."""

    async def publish(self, event: Event) -> None:
        pass
