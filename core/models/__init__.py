"""
Domain models for the session engine.

These are the core data structures used throughout the application.
"""

from .attachment import AttachmentPayload
from .branch import BranchRecord, BranchResult, DegradedReason, NavigationGroup, WorldlineSibling
from .content import (
    ContentBlock,
    DocumentBlock,
    DocumentSource,
    ImageBlock,
    ImageSource,
    OtherBlock,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from .message import ChatMessage, MessagePart
from .notifications import (
    MessageAdded,
    MessagesUpdated,
    MessageUpdated,
    SessionNotification,
    SessionStateChanged,
)
from .session_options import SessionInfo, SessionOptions, SessionStateUpdate
from .turn import (
    AssistantTurn,
    OtherTurn,
    ResultTurn,
    StreamEventTurn,
    SystemTurn,
    Turn,
    TurnPayload,
    UserTurn,
    content_blocks,
    parse_turn,
    turn_text,
)
from .utils import extract_timestamp, gen_id

__all__ = [
    # Utils
    "gen_id",
    "extract_timestamp",
    # Content blocks
    "ContentBlock",
    "TextBlock",
    "ImageBlock",
    "ImageSource",
    "DocumentBlock",
    "DocumentSource",
    "ToolUseBlock",
    "ToolResultBlock",
    "ThinkingBlock",
    "OtherBlock",
    # Turns
    "Turn",
    "TurnPayload",
    "UserTurn",
    "AssistantTurn",
    "SystemTurn",
    "ResultTurn",
    "StreamEventTurn",
    "OtherTurn",
    "parse_turn",
    "content_blocks",
    "turn_text",
    # Messages
    "ChatMessage",
    "MessagePart",
    "AttachmentPayload",
    # Session state
    "SessionOptions",
    "SessionStateUpdate",
    "SessionInfo",
    # Notifications
    "MessageAdded",
    "MessagesUpdated",
    "MessageUpdated",
    "SessionStateChanged",
    "SessionNotification",
    # Branching
    "BranchResult",
    "BranchRecord",
    "WorldlineSibling",
    "NavigationGroup",
    "DegradedReason",
]
