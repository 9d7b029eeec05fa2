"""Content block models.

Blocks mirror the Anthropic message content format. Unknown block types are
kept as ``OtherBlock`` instead of failing validation.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag


class TextBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["text"] = "text"
    text: str


class ImageSource(BaseModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class ImageBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["image"] = "image"
    source: ImageSource


class DocumentSource(BaseModel):
    type: Literal["base64", "text"]
    media_type: str
    data: str


class DocumentBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["document"] = "document"
    source: DocumentSource
    title: str | None = None


class ToolUseBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any]


class ToolResultBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[dict[str, Any]] = ""
    is_error: bool = False


class ThinkingBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["thinking"] = "thinking"
    thinking: str | None = None


class OtherBlock(BaseModel):
    """Fallback for block types this package does not model."""

    model_config = ConfigDict(extra="allow")

    type: str


KNOWN_BLOCK_TYPES = frozenset(
    {"text", "image", "document", "tool_use", "tool_result", "thinking"}
)


def _block_tag(value: Any) -> str:
    block_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return block_type if block_type in KNOWN_BLOCK_TYPES else "other"


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ImageBlock, Tag("image")],
        Annotated[DocumentBlock, Tag("document")],
        Annotated[ToolUseBlock, Tag("tool_use")],
        Annotated[ToolResultBlock, Tag("tool_result")],
        Annotated[ThinkingBlock, Tag("thinking")],
        Annotated[OtherBlock, Tag("other")],
    ],
    Discriminator(_block_tag),
]
