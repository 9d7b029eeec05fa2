"""
Agent backend running queries through Pydantic AI.

Adapts ``Agent.run_stream_events`` to the turn stream the session engine
consumes, and persists every turn to a JSONL transcript so sessions can be
resumed and forked.
"""

import base64
import binascii
import logging
import time
import uuid
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, Iterable

from pydantic_ai import Agent, AgentRunResultEvent
from pydantic_ai.exceptions import UsageLimitExceeded
from pydantic_ai.messages import (
    BinaryContent,
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    RetryPromptPart,
    TextPart,
    TextPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserContent,
    UserPromptPart,
)
from pydantic_ai.usage import UsageLimits

from config.loader import get_working_directory
from core.models import (
    AssistantTurn,
    ContentBlock,
    DocumentBlock,
    ImageBlock,
    ResultTurn,
    SessionOptions,
    StreamEventTurn,
    SystemTurn,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    TurnPayload,
    UserTurn,
    content_blocks,
)
from core.protocols import QueryRequest

from .agent import AgentDeps, get_anthropic_model_settings, model_name
from .transcripts import TranscriptStore

logger = logging.getLogger(__name__)


# =============================================================================
# Transcript -> Pydantic AI history
# =============================================================================


def _user_content(blocks: Iterable[ContentBlock]) -> list[UserContent]:
    content: list[UserContent] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            content.append(block.text)
        elif isinstance(block, ImageBlock):
            try:
                data = base64.b64decode(block.source.data)
            except binascii.Error:
                logger.warning("Dropping undecodable image from history")
                continue
            content.append(BinaryContent(data=data, media_type=block.source.media_type))
        elif isinstance(block, DocumentBlock):
            if block.source.type == "text":
                title = f"{block.title}\n\n" if block.title else ""
                content.append(f"{title}{block.source.data}")
            else:
                try:
                    data = base64.b64decode(block.source.data)
                except binascii.Error:
                    logger.warning("Dropping undecodable document from history")
                    continue
                content.append(BinaryContent(data=data, media_type=block.source.media_type))
    return content


def _tool_result_text(block: ToolResultBlock) -> str:
    if isinstance(block.content, str):
        return block.content
    return "".join(str(item.get("text", "")) for item in block.content)


def turns_to_model_messages(turns: Iterable[Turn]) -> list[ModelMessage]:
    """
    Rebuild Pydantic AI message history from transcript turns.

    Consecutive user turns become one ``ModelRequest`` and consecutive
    assistant turns one ``ModelResponse``. Tool calls that never received a
    result are dropped.
    """
    messages: list[ModelMessage] = []
    tool_names: dict[str, str] = {}
    returned: set[str] = set()

    def add(kind: type, parts: list[Any]) -> None:
        if not parts:
            return
        if messages and isinstance(messages[-1], kind):
            messages[-1].parts = [*messages[-1].parts, *parts]
        else:
            messages.append(kind(parts=parts))

    for turn in turns:
        if isinstance(turn, UserTurn):
            blocks = content_blocks(turn.message)
            parts: list[Any] = []
            for block in blocks:
                if isinstance(block, ToolResultBlock):
                    returned.add(block.tool_use_id)
                    parts.append(
                        ToolReturnPart(
                            tool_name=tool_names.get(block.tool_use_id, ""),
                            content=_tool_result_text(block),
                            tool_call_id=block.tool_use_id,
                        )
                    )
            user_content = _user_content(b for b in blocks if not isinstance(b, ToolResultBlock))
            if user_content:
                parts.append(UserPromptPart(content=user_content))
            add(ModelRequest, parts)
        elif isinstance(turn, AssistantTurn):
            parts = []
            for block in content_blocks(turn.message):
                if isinstance(block, TextBlock):
                    parts.append(TextPart(content=block.text))
                elif isinstance(block, ToolUseBlock):
                    tool_names[block.id] = block.name
                    parts.append(
                        ToolCallPart(tool_name=block.name, args=block.input, tool_call_id=block.id)
                    )
            add(ModelResponse, parts)

    for message in messages:
        if isinstance(message, ModelResponse):
            message.parts = [
                p for p in message.parts
                if not isinstance(p, ToolCallPart) or p.tool_call_id in returned
            ]
    return [m for m in messages if m.parts]


def truncate_history(turns: list[Turn], resume_at: str | None) -> list[Turn]:
    """Keep turns up to and including ``resume_at`` (all turns if it is unknown)."""
    if not resume_at:
        return turns
    for index, turn in enumerate(turns):
        if turn.uuid == resume_at:
            return turns[: index + 1]
    logger.warning("Resume point %s not in history, keeping all %d turns", resume_at, len(turns))
    return turns


# =============================================================================
# Backend
# =============================================================================


class _TurnWriter:
    """Stamps, chains and persists the turns of one query."""

    def __init__(self, transcripts: TranscriptStore, session_id: str, parent_uuid: str | None):
        self.transcripts = transcripts
        self.session_id = session_id
        self.parent_uuid = parent_uuid

    def stamp(self, turn: Turn, chain: bool = True, persist: bool = True) -> Turn:
        turn.session_id = self.session_id
        if turn.uuid is None:
            turn.uuid = str(uuid.uuid4())
        if turn.timestamp is None:
            turn.timestamp = time.time()
        if chain:
            turn.parent_uuid = self.parent_uuid
            self.parent_uuid = turn.uuid
        if persist:
            self.transcripts.append(self.session_id, [turn])
        return turn


class PydanticAIBackend:
    """
    AgentBackend implementation on top of a Pydantic AI agent.

    Args:
        agent: Agent created by ``backend.agent.create_agent``
        transcripts: Transcript storage
        working_dir: Working directory used when options carry no ``cwd``
    """

    def __init__(
        self,
        agent: Agent[AgentDeps, str],
        transcripts: TranscriptStore,
        working_dir: str | None = None,
    ):
        self.agent = agent
        self.transcripts = transcripts
        self.working_dir = working_dir or get_working_directory()

    async def load_persisted_turns(self, session_id: str) -> list[Turn]:
        return self.transcripts.load(session_id)

    def _model_settings(self, options: SessionOptions) -> dict[str, Any]:
        return dict(get_anthropic_model_settings(enable_thinking=options.thinking_level != "off"))

    def _prepare_history(self, request: QueryRequest) -> tuple[str, list[Turn], bool]:
        """Pick the session id to write to and the history turns it starts from."""
        if request.resume and not request.fork_session:
            history = self.transcripts.load(request.resume)
            return request.resume, history, not history

        session_id = str(uuid.uuid4())
        if not request.resume:
            return session_id, [], True

        history = truncate_history(self.transcripts.load(request.resume), request.resume_session_at)
        copies = [turn.model_copy(update={"session_id": session_id}) for turn in history]
        self.transcripts.append(session_id, copies)
        logger.info(
            "Forked %s into %s (%d turns, resume_at=%s)",
            request.resume,
            session_id,
            len(copies),
            request.resume_session_at,
        )
        return session_id, copies, False

    async def stream_turns(
        self, prompt: str | AsyncIterable[UserTurn], request: QueryRequest
    ) -> AsyncIterator[Turn]:
        """
        Run one query and stream its turns.

        Yields a ``system``/``init`` turn, the echoed user turn(s), assistant
        text and tool-call turns, tool-result user turns and a final
        ``result`` turn. Text deltas are yielded as ``stream_event`` turns and
        are not persisted.
        """
        options = request.options
        session_id, history, is_new = self._prepare_history(request)
        chain_tail = next(
            (t.uuid for t in reversed(history) if isinstance(t, (UserTurn, AssistantTurn))),
            None,
        )
        writer = _TurnWriter(self.transcripts, session_id, chain_tail)
        working_dir = options.cwd or self.working_dir

        yield writer.stamp(
            SystemTurn(subtype="init", cwd=working_dir),
            chain=False,
            persist=is_new,
        )

        if isinstance(prompt, str):
            user_turns = [UserTurn(message=TurnPayload(role="user", content=[TextBlock(text=prompt)]))]
        else:
            user_turns = [turn async for turn in prompt]

        model_history = turns_to_model_messages(history)
        for turn in user_turns[:-1]:
            model_history.extend(turns_to_model_messages([turn]))
        for turn in user_turns:
            yield writer.stamp(turn.model_copy(deep=True))

        user_prompt = _user_content(content_blocks(user_turns[-1].message)) if user_turns else []

        run_kwargs: dict[str, Any] = {
            "message_history": model_history,
            "model_settings": self._model_settings(options),
            "deps": AgentDeps(
                working_dir=Path(working_dir),
                allowed_tools=list(options.allowed_tools),
                system_prompt=options.system_prompt or "",
            ),
        }
        if options.max_turns:
            run_kwargs["usage_limits"] = UsageLimits(request_limit=options.max_turns)
        if options.model:
            run_kwargs["model"] = model_name(options.model)

        text_buffer: list[str] = []

        def flush_text() -> AssistantTurn | None:
            if not text_buffer:
                return None
            text = "".join(text_buffer)
            text_buffer.clear()
            return AssistantTurn(message=TurnPayload(role="assistant", content=[TextBlock(text=text)]))

        output: str | None = None
        tool_call_count = 0
        try:
            async for event in self.agent.run_stream_events(user_prompt, **run_kwargs):
                if request.abort_event.is_set():
                    logger.info("Query for %s aborted", session_id)
                    break

                if isinstance(event, PartStartEvent):
                    if isinstance(event.part, TextPart) and event.part.content:
                        text_buffer.append(event.part.content)
                        yield writer.stamp(
                            StreamEventTurn(event={"type": "text_delta", "text": event.part.content}),
                            chain=False,
                            persist=False,
                        )

                elif isinstance(event, PartDeltaEvent):
                    if isinstance(event.delta, TextPartDelta) and event.delta.content_delta:
                        text_buffer.append(event.delta.content_delta)
                        yield writer.stamp(
                            StreamEventTurn(event={"type": "text_delta", "text": event.delta.content_delta}),
                            chain=False,
                            persist=False,
                        )

                elif isinstance(event, FunctionToolCallEvent):
                    if (text_turn := flush_text()) is not None:
                        yield writer.stamp(text_turn)
                    tool_call_count += 1
                    logger.debug("Tool call: %s", event.part.tool_name)
                    yield writer.stamp(
                        AssistantTurn(
                            message=TurnPayload(
                                role="assistant",
                                content=[
                                    ToolUseBlock(
                                        id=event.part.tool_call_id,
                                        name=event.part.tool_name,
                                        input=event.part.args_as_dict(),
                                    )
                                ],
                            )
                        )
                    )

                elif isinstance(event, FunctionToolResultEvent):
                    result = event.result
                    if isinstance(result, RetryPromptPart):
                        block = ToolResultBlock(
                            tool_use_id=result.tool_call_id,
                            content=result.model_response(),
                            is_error=True,
                        )
                    else:
                        block = ToolResultBlock(
                            tool_use_id=result.tool_call_id,
                            content=result.model_response_str(),
                        )
                    yield writer.stamp(
                        UserTurn(message=TurnPayload(role="user", content=[block]))
                    )

                elif isinstance(event, AgentRunResultEvent):
                    output = str(event.result.output)
        except UsageLimitExceeded as e:
            logger.warning("Query for %s hit its usage limit: %s", session_id, e)
            if (text_turn := flush_text()) is not None:
                yield writer.stamp(text_turn)
            yield writer.stamp(
                ResultTurn(subtype="error_max_turns", is_error=True, result=str(e)),
                chain=False,
                persist=False,
            )
            return

        if (text_turn := flush_text()) is not None:
            yield writer.stamp(text_turn)

        logger.debug("Query for %s complete: %d tool calls", session_id, tool_call_count)
        if request.abort_event.is_set():
            subtype, is_error = "interrupted", True
        else:
            subtype, is_error = "success", False
        yield writer.stamp(
            ResultTurn(subtype=subtype, is_error=is_error, result=output),
            chain=False,
            persist=False,
        )
