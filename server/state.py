"""
Application context.

Every long-lived dependency of the server is built once at startup into an
``AppContext`` stored on ``app.state``. Routes reach it through
``get_context``; nothing is held in module globals.
"""

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request

from config import Config
from core import (
    AgentBackend,
    BranchStore,
    InMemoryBranchStore,
    JsonFileBranchStore,
    SessionRegistry,
    WorldlineResolver,
)
from core.models import SessionOptions

from .event_bus import SSEEventBus
from .websocket_handler import WebSocketHandler

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: Config
    backend: AgentBackend
    registry: SessionRegistry
    resolver: WorldlineResolver
    event_bus: SSEEventBus
    handler: WebSocketHandler


def session_defaults(config: Config) -> SessionOptions:
    """Default session options from the ``sessions`` config section."""
    return SessionOptions(**config.sessions.model_dump())


def build_context(
    config: Config,
    backend: AgentBackend | None = None,
    branch_store: BranchStore | None = None,
    event_bus: SSEEventBus | None = None,
) -> AppContext:
    """
    Wire the server's dependencies.

    Args:
        config: Loaded configuration
        backend: Agent backend (defaults to the Pydantic AI backend over JSONL transcripts)
        branch_store: Branch record storage (defaults to the configured directory)
        event_bus: Event bus for the global SSE stream

    Returns:
        The assembled AppContext
    """
    transcripts = None
    if backend is None:
        from backend import PydanticAIBackend, TranscriptStore, create_agent
        from backend.agent import model_name

        transcripts = TranscriptStore(config.storage.transcripts_dir)
        backend = PydanticAIBackend(create_agent(model_name(config.sessions.model)), transcripts)
        logger.info("Transcripts stored in %s", transcripts.root)

    if branch_store is None:
        if config.storage.branches_dir:
            branch_store = JsonFileBranchStore(config.storage.branches_dir)
        else:
            branch_store = InMemoryBranchStore()

    registry = SessionRegistry(backend, session_defaults(config))

    def last_modified(session_id: str) -> float | None:
        session = registry.get_session(session_id)
        if session is not None:
            return session.last_modified_time
        return transcripts.last_modified(session_id) if transcripts is not None else None

    resolver = WorldlineResolver(branch_store, last_modified=last_modified)
    event_bus = event_bus or SSEEventBus()
    handler = WebSocketHandler(registry, resolver, event_bus)
    return AppContext(
        config=config,
        backend=backend,
        registry=registry,
        resolver=resolver,
        event_bus=event_bus,
        handler=handler,
    )


def context_of(app: FastAPI) -> AppContext:
    context = getattr(app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context has not been initialized")
    return context


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application context."""
    return context_of(request.app)
