"""
Session registry.

Maps observers to sessions, creates sessions on demand and routes observer
commands to the right session.
"""

import asyncio
import logging
from typing import Any, Iterable

from .exceptions import NotFoundError
from .models import AttachmentPayload, SessionOptions
from .protocols import AgentBackend, SessionClient
from .sessions import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns every Session known to the process."""

    def __init__(self, backend: AgentBackend, defaults: SessionOptions | None = None):
        self._backend = backend
        self._defaults = defaults or SessionOptions()
        self._sessions: list[Session] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def sessions_by_recency(self) -> list[Session]:
        """Sessions sorted by last modification, most recent first."""
        return sorted(self._sessions, key=lambda s: s.last_modified_time, reverse=True)

    def get_session(self, session_id: str) -> Session | None:
        return next((s for s in self._sessions if s.session_id == session_id), None)

    def require_session(self, session_id: str) -> Session:
        """
        Look up a session by id.

        Raises:
            NotFoundError: If no session has this id
        """
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def create_session(self) -> Session:
        session = Session(self._backend, self._defaults)
        self._sessions.append(session)
        return session

    def find_session_for_client(self, client: SessionClient) -> Session | None:
        if client.session_id:
            session = self.get_session(client.session_id)
            if session is not None:
                return session
        return next((s for s in self._sessions if s.has_client(client)), None)

    def get_or_create_session(self, client: SessionClient) -> Session:
        """
        Resolve the session an observer talks to.

        Looks up the observer's session id, then any session already holding
        the observer, and finally creates a new session.
        """
        session = self.find_session_for_client(client)
        if session is None:
            session = self.create_session()
            client.session_id = session.session_id
            logger.debug("Created session for client (total=%d)", len(self._sessions))
        return session

    def subscribe(self, client: SessionClient) -> Session:
        session = self.get_or_create_session(client)
        session.subscribe(client)
        return session

    def unsubscribe(self, client: SessionClient) -> None:
        session = self.find_session_for_client(client)
        if session is not None:
            session.unsubscribe(client)

    def track(self, coro: Any) -> asyncio.Task[Any]:
        """Run a coroutine as a background task cancelled on shutdown."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def send_message(
        self,
        client: SessionClient,
        prompt: str,
        attachments: Iterable[AttachmentPayload] | None = None,
    ) -> asyncio.Task[None]:
        """Start a send on the observer's session without waiting for it."""
        session = self.get_or_create_session(client)
        session.subscribe(client)
        return self.track(session.send(prompt, attachments))

    def set_options(self, client: SessionClient, options: dict[str, Any]) -> None:
        session = self.get_or_create_session(client)
        session.subscribe(client)
        session.set_options(options)

    def interrupt(self, client: SessionClient) -> bool:
        """Interrupt the observer's session. Returns False if it has none."""
        session = self.find_session_for_client(client)
        if session is None:
            return False
        session.interrupt()
        return True

    async def shutdown(self) -> None:
        """Interrupt all sessions and cancel outstanding background sends."""
        for session in self._sessions:
            session.interrupt()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Session registry shut down (%d tasks cancelled)", len(tasks))
