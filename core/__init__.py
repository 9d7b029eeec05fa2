"""
Core session engine.

This package contains the transport-agnostic conversation engine: message
ingestion, history compaction, sessions, the session registry and worldline
resolution. The server package binds it to WebSocket and HTTP.
"""

from .compaction import compact
from .events import Event, EventBus, NullEventBus, branched_event, turn_completed_event
from .exceptions import CoreError, ErrorCode, InvalidOperationError, NotFoundError, ProtocolError
from .messages import (
    IngestResult,
    ToolResultUpdate,
    build_user_message_content,
    convert_turns,
    create_message_from_turn,
    ingest,
)
from .protocols import AgentBackend, QueryRequest, SessionClient
from .registry import SessionRegistry
from .sessions import Session
from .worldlines import (
    BranchStore,
    InMemoryBranchStore,
    JsonFileBranchStore,
    WorldlineResolver,
)

__all__ = [
    # Exceptions
    "CoreError",
    "NotFoundError",
    "InvalidOperationError",
    "ProtocolError",
    "ErrorCode",
    # Events
    "Event",
    "EventBus",
    "NullEventBus",
    "branched_event",
    "turn_completed_event",
    # Interfaces
    "AgentBackend",
    "QueryRequest",
    "SessionClient",
    # Messages
    "ingest",
    "IngestResult",
    "ToolResultUpdate",
    "create_message_from_turn",
    "build_user_message_content",
    "convert_turns",
    "compact",
    # Sessions
    "Session",
    "SessionRegistry",
    # Worldlines
    "BranchStore",
    "InMemoryBranchStore",
    "JsonFileBranchStore",
    "WorldlineResolver",
]
