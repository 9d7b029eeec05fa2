"""Turn models.

A turn is one atomic message emitted by the agent backend stream or read back
from a persisted transcript.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

from .content import ContentBlock, TextBlock


class TurnPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: str | list[ContentBlock]


class TurnBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uuid: str | None = None
    session_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("session_id", "sessionId"),
    )
    parent_uuid: str | None = Field(
        default=None,
        validation_alias=AliasChoices("parent_uuid", "parentUuid"),
    )
    timestamp: float | str | None = None


class UserTurn(TurnBase):
    type: Literal["user"] = "user"
    message: TurnPayload
    parent_tool_use_id: str | None = None


class AssistantTurn(TurnBase):
    type: Literal["assistant"] = "assistant"
    message: TurnPayload


class SystemTurn(TurnBase):
    type: Literal["system"] = "system"
    subtype: str | None = None
    cwd: str | None = None


class ResultTurn(TurnBase):
    type: Literal["result"] = "result"
    subtype: str | None = None
    is_error: bool = False
    result: str | None = None


class StreamEventTurn(TurnBase):
    type: Literal["stream_event"] = "stream_event"
    event: dict[str, Any] = Field(default_factory=dict)


class OtherTurn(TurnBase):
    """Fallback for turn types this package does not model."""

    type: str


KNOWN_TURN_TYPES = frozenset({"user", "assistant", "system", "result", "stream_event"})


def _turn_tag(value: Any) -> str:
    turn_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return turn_type if turn_type in KNOWN_TURN_TYPES else "other"


Turn = Annotated[
    Union[
        Annotated[UserTurn, Tag("user")],
        Annotated[AssistantTurn, Tag("assistant")],
        Annotated[SystemTurn, Tag("system")],
        Annotated[ResultTurn, Tag("result")],
        Annotated[StreamEventTurn, Tag("stream_event")],
        Annotated[OtherTurn, Tag("other")],
    ],
    Discriminator(_turn_tag),
]

_turn_adapter: TypeAdapter[Turn] = TypeAdapter(Turn)


def parse_turn(data: dict[str, Any]) -> Turn:
    """Validate a raw turn dictionary into its tagged model."""
    return _turn_adapter.validate_python(data)


def content_blocks(payload: TurnPayload) -> list[ContentBlock]:
    """Return the payload content as a list of blocks."""
    if isinstance(payload.content, str):
        return [TextBlock(text=payload.content)]
    return list(payload.content)


def turn_text(turn: UserTurn | AssistantTurn) -> str:
    """Concatenate the text blocks of a user or assistant turn."""
    return "".join(
        block.text for block in content_blocks(turn.message) if isinstance(block, TextBlock)
    )
