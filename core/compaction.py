"""
History compaction.

Collapses contiguous runs of successful read-file tool calls into a single
aggregate message so observers see one entry per batch of reads.
"""

import logging

from config.defaults import COALESCED_READ_TOOL_NAME, READ_TOOL_NAME

from .models import ChatMessage, MessagePart, ToolResultBlock, ToolUseBlock, gen_id

logger = logging.getLogger(__name__)


def _uses_tool(message: ChatMessage, tool_name: str) -> bool:
    return message.type == "assistant" and any(
        part.tool_use is not None and part.tool_use.name == tool_name for part in message.parts
    )


def _first_part_succeeded(message: ChatMessage) -> bool:
    if not message.parts:
        return False
    result = message.parts[0].tool_result
    return result is not None and not result.is_error


def is_mergeable(message: ChatMessage, tool_name: str = READ_TOOL_NAME) -> bool:
    """True for an assistant tool call of ``tool_name`` whose first part succeeded."""
    return _uses_tool(message, tool_name) and _first_part_succeeded(message)


def _aggregate(run: list[ChatMessage], coalesced_name: str) -> ChatMessage:
    file_reads = []
    for message in run:
        tool_use = next((p.tool_use for p in message.parts if p.tool_use is not None), None)
        file_reads.append(tool_use.input if tool_use is not None else None)

    tool_use = ToolUseBlock(
        id=gen_id("coalesced_"),
        name=coalesced_name,
        input={"fileReads": file_reads},
    )
    tool_result = ToolResultBlock(
        tool_use_id=tool_use.id,
        content=f"Successfully read {len(run)} files",
        is_error=False,
    )
    first = run[0]
    return ChatMessage(
        id=first.id,
        type="assistant",
        parts=[MessagePart(content=tool_use, tool_result=tool_result)],
        timestamp=first.timestamp,
    )


def compact(
    messages: list[ChatMessage],
    tool_name: str = READ_TOOL_NAME,
    coalesced_name: str = COALESCED_READ_TOOL_NAME,
) -> list[ChatMessage]:
    """
    Merge contiguous runs of successful ``tool_name`` calls.

    Runs of a single message are kept as-is; longer runs are replaced by one
    aggregate message whose tool input lists every original input in order.
    The input list is not modified.

    Args:
        messages: Message list to compact
        tool_name: Tool whose repeated calls are merged
        coalesced_name: Tool name given to the aggregate

    Returns:
        New compacted message list
    """
    result: list[ChatMessage] = []
    index = 0

    while index < len(messages):
        message = messages[index]
        if is_mergeable(message, tool_name):
            end = index + 1
            while end < len(messages) and is_mergeable(messages[end], tool_name):
                end += 1
            if end - index > 1:
                logger.debug("Coalescing %d %s calls", end - index, tool_name)
                result.append(_aggregate(messages[index:end], coalesced_name))
                index = end
                continue

        result.append(message)
        index += 1

    return result
