"""Outbound session notifications delivered to observers."""

from typing import Literal, Union

from pydantic import BaseModel

from .message import ChatMessage
from .session_options import SessionStateUpdate


class MessageAdded(BaseModel):
    type: Literal["message_added"] = "message_added"
    sessionId: str | None
    message: ChatMessage


class MessagesUpdated(BaseModel):
    """Full replacement of the message list (after load, resume or branch)."""

    type: Literal["messages_updated"] = "messages_updated"
    sessionId: str | None
    messages: list[ChatMessage]


class MessageUpdated(BaseModel):
    """An existing message changed because a tool result was linked into it."""

    type: Literal["message_updated"] = "message_updated"
    sessionId: str | None
    message: ChatMessage


class SessionStateChanged(BaseModel):
    type: Literal["session_state_changed"] = "session_state_changed"
    sessionId: str | None
    state: SessionStateUpdate


SessionNotification = Union[MessageAdded, MessagesUpdated, MessageUpdated, SessionStateChanged]
