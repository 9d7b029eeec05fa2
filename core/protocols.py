"""
Interfaces the session engine consumes.

The server layer provides observers (``SessionClient``) and the backend
package provides the agent execution service (``AgentBackend``).
"""

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Protocol

from .models import SessionNotification, SessionOptions, Turn, UserTurn


class SessionClient(Protocol):
    """An observer subscribed to at most one session at a time."""

    session_id: str | None

    def receive_session_message(self, notification: SessionNotification) -> None:
        """Deliver a notification. Must not block."""
        ...


@dataclass
class QueryRequest:
    """
    Per-query context handed to the backend.

    Attributes:
        options: Effective session options
        resume: Session to continue (or fork from)
        fork_session: Write the continuation to a new session ID
        resume_session_at: Last message UUID of ``resume`` to keep
        abort_event: Set when the caller interrupts the query
    """

    options: SessionOptions
    resume: str | None = None
    fork_session: bool = False
    resume_session_at: str | None = None
    abort_event: asyncio.Event = field(default_factory=asyncio.Event)


class AgentBackend(Protocol):
    """Agent execution service producing conversation turns."""

    def stream_turns(
        self, prompt: str | AsyncIterable[UserTurn], request: QueryRequest
    ) -> AsyncIterator[Turn]:
        """Stream turns for a prompt. The sequence is not restartable."""
        ...

    async def load_persisted_turns(self, session_id: str) -> list[Turn]:
        """Load every persisted turn of a session (empty when unknown)."""
        ...
