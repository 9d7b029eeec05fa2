"""
Message ingestion and linking.

Turns arriving from the agent backend are rendered into ``ChatMessage``
entries. Tool results are linked back into the assistant message that issued
the matching tool call instead of being rendered on their own.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable

from .compaction import compact
from .models import (
    AssistantTurn,
    AttachmentPayload,
    ChatMessage,
    ContentBlock,
    DocumentBlock,
    DocumentSource,
    ImageBlock,
    ImageSource,
    MessagePart,
    OtherTurn,
    ResultTurn,
    StreamEventTurn,
    SystemTurn,
    TextBlock,
    ToolResultBlock,
    Turn,
    UserTurn,
    content_blocks,
    extract_timestamp,
    gen_id,
)

logger = logging.getLogger(__name__)

INLINE_IMAGE_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")


@dataclass
class ToolResultUpdate:
    message: ChatMessage
    tool_use_id: str
    tool_result: ToolResultBlock


@dataclass
class IngestResult:
    """Outcome of ingesting one turn."""

    added_message: ChatMessage | None = None
    updated_messages: list[ChatMessage] = field(default_factory=list)
    tool_result_updates: list[ToolResultUpdate] = field(default_factory=list)


# =============================================================================
# Rendering
# =============================================================================


def _message(turn: Turn, parts: list[MessagePart]) -> ChatMessage:
    timestamp = extract_timestamp(turn.timestamp)
    return ChatMessage(
        id=turn.uuid or gen_id("msg_"),
        type=turn.type,
        parts=parts,
        timestamp=timestamp if timestamp is not None else time.time(),
    )


def create_message_from_turn(turn: Turn) -> ChatMessage | None:
    """
    Render a turn into a chat message.

    Args:
        turn: The incoming turn

    Returns:
        The rendered message, or None for stream events which are never rendered
    """
    if isinstance(turn, StreamEventTurn):
        return None
    if isinstance(turn, (UserTurn, AssistantTurn)):
        parts = [MessagePart(content=block) for block in content_blocks(turn.message)]
        return _message(turn, parts)
    if isinstance(turn, (SystemTurn, ResultTurn)):
        return _message(turn, [])
    if isinstance(turn, OtherTurn):
        logger.debug("Rendering unhandled turn type %r as empty message", turn.type)
        return _message(turn, [])

    logger.warning("Unhandled turn variant %s", type(turn).__name__)
    return _message(turn, [])


# =============================================================================
# Ingestion
# =============================================================================


def _find_tool_use_part(
    messages: list[ChatMessage], tool_use_id: str
) -> tuple[ChatMessage, MessagePart] | None:
    for message in reversed(messages):
        if message.type != "assistant":
            continue
        for part in message.parts:
            tool_use = part.tool_use
            if tool_use is not None and tool_use.id == tool_use_id:
                return message, part
    return None


def ingest(messages: list[ChatMessage], turn: Turn) -> IngestResult:
    """
    Append a turn to a message list, linking tool results to their calls.

    Each tool result in a user turn is attached to the most recent assistant
    part whose tool call id matches. The turn is appended as a new message only
    when it renders and none of its tool results were linked.

    Args:
        messages: Message list, mutated in place
        turn: The incoming turn

    Returns:
        IngestResult describing what was added or updated
    """
    result = IngestResult()

    if isinstance(turn, UserTurn) and isinstance(turn.message.content, list):
        for block in turn.message.content:
            if not isinstance(block, ToolResultBlock):
                continue
            match = _find_tool_use_part(messages, block.tool_use_id)
            if match is None:
                logger.debug("No tool call found for result %s", block.tool_use_id)
                continue
            message, part = match
            part.tool_result = block
            if not any(m is message for m in result.updated_messages):
                result.updated_messages.append(message)
            result.tool_result_updates.append(
                ToolResultUpdate(message=message, tool_use_id=block.tool_use_id, tool_result=block)
            )

    rendered = create_message_from_turn(turn)
    if rendered is not None and not result.updated_messages:
        messages.append(rendered)
        result.added_message = rendered

    return result


def convert_turns(turns: Iterable[Turn]) -> list[ChatMessage]:
    """Replay persisted turns into a compacted message list."""
    messages: list[ChatMessage] = []
    for turn in turns:
        ingest(messages, turn)
    return compact(messages)


# =============================================================================
# User content
# =============================================================================


def build_user_message_content(
    prompt: str, attachments: Iterable[AttachmentPayload] | None = None
) -> list[ContentBlock]:
    """
    Build the content blocks of a user turn.

    Supported attachments come first, followed by the prompt text. Images are
    inlined as base64, plain text is decoded into a text document and PDFs are
    kept as base64 documents. Anything else is skipped.

    Args:
        prompt: The user's message
        attachments: Optional attachments

    Returns:
        List of content blocks
    """
    blocks: list[ContentBlock] = []

    for attachment in attachments or []:
        media_type = attachment.mediaType
        if media_type in INLINE_IMAGE_MEDIA_TYPES:
            blocks.append(
                ImageBlock(source=ImageSource(media_type=media_type, data=attachment.data))
            )
        elif media_type == "text/plain":
            try:
                decoded = base64.b64decode(attachment.data, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                logger.error("Cannot decode attachment %s: %s", attachment.name, e)
                continue
            blocks.append(
                DocumentBlock(
                    source=DocumentSource(type="text", media_type="text/plain", data=decoded),
                    title=attachment.name,
                )
            )
        elif media_type == "application/pdf":
            blocks.append(
                DocumentBlock(
                    source=DocumentSource(
                        type="base64", media_type="application/pdf", data=attachment.data
                    ),
                    title=attachment.name,
                )
            )
        else:
            logger.error(
                "Cannot process attachment %s: unsupported media type %s",
                attachment.name,
                media_type,
            )

    blocks.append(TextBlock(text=prompt))
    return blocks
