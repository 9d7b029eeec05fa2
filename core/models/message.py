"""Chat message models."""

from pydantic import BaseModel, ConfigDict

from .content import ContentBlock, ToolResultBlock, ToolUseBlock


class MessagePart(BaseModel):
    content: ContentBlock
    tool_result: ToolResultBlock | None = None

    @property
    def tool_use(self) -> ToolUseBlock | None:
        return self.content if isinstance(self.content, ToolUseBlock) else None


class ChatMessage(BaseModel):
    """
    A renderable conversation message.

    Frozen once created; the only field updated afterwards is
    ``MessagePart.tool_result``, when a tool result is linked back to the part
    that invoked the tool.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    parts: list[MessagePart]
    timestamp: float
