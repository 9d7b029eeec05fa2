"""
Inbound WebSocket command parsing.
"""

import json
from typing import Annotated, Union

from pydantic import Field, TypeAdapter, ValidationError

from core.exceptions import ErrorCode, ProtocolError

from .branch_request import BranchRequest
from .chat_request import ChatRequest
from .interrupt_request import InterruptRequest
from .resume_request import ResumeRequest
from .set_options_request import SetOptionsRequest

InboundCommand = Annotated[
    Union[ChatRequest, SetOptionsRequest, ResumeRequest, BranchRequest, InterruptRequest],
    Field(discriminator="type"),
]

COMMAND_TYPES = frozenset({"chat", "setOptions", "resume", "branch", "interrupt"})

_command_adapter: TypeAdapter[InboundCommand] = TypeAdapter(InboundCommand)


def parse_command(raw: str | bytes) -> InboundCommand:
    """
    Parse one inbound WebSocket frame.

    Args:
        raw: The frame's text

    Returns:
        The validated command

    Raises:
        ProtocolError: If the frame is not a JSON object, has an unknown
            type or fails validation
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(ErrorCode.INVALID_PAYLOAD, f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError(ErrorCode.INVALID_PAYLOAD, "Message must be a JSON object")

    command_type = data.get("type")
    if command_type not in COMMAND_TYPES:
        raise ProtocolError(
            ErrorCode.UNSUPPORTED_MESSAGE_TYPE,
            f"Unsupported message type: {command_type}",
        )

    try:
        return _command_adapter.validate_python(data)
    except ValidationError as e:
        raise ProtocolError(ErrorCode.INVALID_PAYLOAD, str(e)) from e
