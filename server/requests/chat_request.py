"""ChatRequest model."""

from typing import Literal

from pydantic import BaseModel

from core.models import AttachmentPayload


class ChatRequest(BaseModel):
    type: Literal["chat"] = "chat"
    content: str = ""
    attachments: list[AttachmentPayload] | None = None
    sessionId: str | None = None
    newConversation: bool = False
