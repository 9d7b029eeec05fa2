"""
Tests for the Pydantic AI backend adapter.

Uses pydantic-ai's TestModel and FunctionModel so no API calls are made.
"""

import pytest
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    RetryPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, DeltaToolCall, FunctionModel
from pydantic_ai.models.test import TestModel

from backend import PydanticAIBackend, TranscriptStore, create_agent, truncate_history, turns_to_model_messages
from core import QueryRequest
from core.models import (
    AssistantTurn,
    ResultTurn,
    SessionOptions,
    StreamEventTurn,
    SystemTurn,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    TurnPayload,
    UserTurn,
    turn_text,
)


async def _prompt(text: str, uuid: str = "prompt-1"):
    yield UserTurn(uuid=uuid, message=TurnPayload(role="user", content=[TextBlock(text=text)]))


async def _collect(backend, prompt, request):
    return [turn async for turn in backend.stream_turns(prompt, request)]


def _rendered(turns):
    return [t for t in turns if not isinstance(t, StreamEventTurn)]


@pytest.fixture
def store(temp_dir):
    return TranscriptStore(temp_dir / "transcripts")


def _text_backend(store, temp_dir, text="Hi there"):
    agent = create_agent(TestModel(call_tools=[], custom_output_text=text))
    return PydanticAIBackend(agent, store, working_dir=str(temp_dir))


class TestTurnsToModelMessages:
    """Test rebuilding model history from transcripts."""

    def test_history_shape(self, turns):
        history = [
            turns.user("u1", "read it"),
            turns.tool_use("a1", "t1", tool_input={"file_path": "x"}),
            turns.tool_result("u2", "t1", content="contents"),
            turns.assistant("a2", "it says contents"),
            turns.tool_use("a3", "t2"),
        ]
        messages = turns_to_model_messages(history)

        assert [type(m) for m in messages] == [ModelRequest, ModelResponse, ModelRequest, ModelResponse]
        assert isinstance(messages[0].parts[0], UserPromptPart)
        call = messages[1].parts[0]
        assert isinstance(call, ToolCallPart)
        assert call.args == {"file_path": "x"}
        ret = messages[2].parts[0]
        assert isinstance(ret, ToolReturnPart)
        assert ret.tool_name == "Read"
        assert ret.content == "contents"
        # the unanswered call t2 is dropped, its turn's text stays
        assert [type(p) for p in messages[3].parts] == [TextPart]

    def test_system_and_result_turns_are_ignored(self, turns):
        history = [turns.system(), turns.user("u1", "hi"), turns.result()]
        assert len(turns_to_model_messages(history)) == 1


class TestTruncateHistory:
    def test_keeps_up_to_anchor(self, turns):
        history = [turns.user("u1", "a"), turns.assistant("a1", "b"), turns.user("u2", "c")]
        assert [t.uuid for t in truncate_history(history, "a1")] == ["u1", "a1"]

    def test_unknown_anchor_keeps_everything(self, turns):
        history = [turns.user("u1", "a")]
        assert truncate_history(history, "zzz") == history


class TestStreamTurns:
    """Test running queries end to end against test models."""

    @pytest.mark.asyncio
    async def test_new_session_stream(self, store, temp_dir, mock_env_vars):
        backend = _text_backend(store, temp_dir)
        request = QueryRequest(options=SessionOptions())

        turns = await _collect(backend, _prompt("hello"), request)
        rendered = _rendered(turns)

        system, user, assistant, result = rendered
        assert isinstance(system, SystemTurn)
        assert system.subtype == "init"
        assert system.cwd == str(temp_dir)
        assert isinstance(user, UserTurn)
        assert user.uuid == "prompt-1"
        assert isinstance(assistant, AssistantTurn)
        assert turn_text(assistant) == "Hi there"
        assert isinstance(result, ResultTurn)
        assert result.subtype == "success"
        assert result.result == "Hi there"
        assert len({t.session_id for t in turns}) == 1

        persisted = store.load(system.session_id)
        assert [t.type for t in persisted] == ["system", "user", "assistant"]
        assert persisted[1].parent_uuid is None
        assert persisted[2].parent_uuid == "prompt-1"

    @pytest.mark.asyncio
    async def test_text_deltas_are_streamed(self, store, temp_dir, mock_env_vars):
        backend = _text_backend(store, temp_dir, text="several words of output")
        turns = await _collect(backend, _prompt("hello"), QueryRequest(options=SessionOptions()))

        deltas = [t.event["text"] for t in turns if isinstance(t, StreamEventTurn)]
        assert "".join(deltas) == "several words of output"

    @pytest.mark.asyncio
    async def test_resume_continues_same_session(self, store, temp_dir, mock_env_vars):
        seen = []

        async def stream(messages, info: AgentInfo):
            seen.append(messages)
            yield "ok"

        agent = create_agent(FunctionModel(stream_function=stream))
        backend = PydanticAIBackend(agent, store, working_dir=str(temp_dir))

        first = await _collect(backend, _prompt("one", "p1"), QueryRequest(options=SessionOptions()))
        session_id = first[0].session_id
        second = await _collect(
            backend, _prompt("two", "p2"), QueryRequest(options=SessionOptions(), resume=session_id)
        )

        assert {t.session_id for t in second} == {session_id}
        persisted = store.load(session_id)
        assert [t.type for t in persisted] == ["system", "user", "assistant", "user", "assistant"]
        assert persisted[3].parent_uuid == persisted[2].uuid
        # second request carried the first exchange as history
        assert len(seen[1]) == 3

    @pytest.mark.asyncio
    async def test_fork_truncates_at_resume_point(self, store, temp_dir, turns, mock_env_vars):
        store.append(
            "source",
            [
                turns.user("u1", "first"),
                turns.assistant("a1", "answer", parent="u1"),
                turns.user("u2", "second", parent="a1"),
                turns.assistant("a2", "answer two", parent="u2"),
            ],
        )
        backend = _text_backend(store, temp_dir)
        request = QueryRequest(
            options=SessionOptions(), resume="source", fork_session=True, resume_session_at="a1"
        )

        result = await _collect(backend, _prompt("replacement"), request)

        new_id = result[0].session_id
        assert new_id != "source"
        forked = store.load(new_id)
        assert [t.uuid for t in forked[:2]] == ["u1", "a1"]
        assert forked[2].uuid == "prompt-1"
        assert forked[2].parent_uuid == "a1"
        assert len(store.load("source")) == 4

    @pytest.mark.asyncio
    async def test_read_tool_call_and_result(self, store, temp_dir, mock_env_vars):
        (temp_dir / "notes.txt").write_text("remember the milk\n")

        async def stream(messages, info: AgentInfo):
            if any(isinstance(p, ToolReturnPart) for p in messages[-1].parts):
                yield "Done reading"
            else:
                yield {0: DeltaToolCall(name="Read", json_args='{"file_path": "notes.txt"}', tool_call_id="call-1")}

        agent = create_agent(FunctionModel(stream_function=stream))
        backend = PydanticAIBackend(agent, store, working_dir=str(temp_dir))
        request = QueryRequest(options=SessionOptions(allowed_tools=["Read"]))

        rendered = _rendered(await _collect(backend, _prompt("read notes"), request))

        tool_use = rendered[2].message.content[0]
        assert isinstance(tool_use, ToolUseBlock)
        assert tool_use.id == "call-1"
        assert tool_use.input == {"file_path": "notes.txt"}
        tool_result = rendered[3].message.content[0]
        assert isinstance(tool_result, ToolResultBlock)
        assert tool_result.tool_use_id == "call-1"
        assert "remember the milk" in tool_result.content
        assert not tool_result.is_error
        assert turn_text(rendered[4]) == "Done reading"

    @pytest.mark.asyncio
    async def test_tool_error_becomes_error_result(self, store, temp_dir, mock_env_vars):
        async def stream(messages, info: AgentInfo):
            if any(isinstance(p, RetryPromptPart) for p in messages[-1].parts):
                yield "Could not read it"
            else:
                yield {0: DeltaToolCall(name="Read", json_args='{"file_path": "missing.txt"}', tool_call_id="call-1")}

        agent = create_agent(FunctionModel(stream_function=stream))
        backend = PydanticAIBackend(agent, store, working_dir=str(temp_dir))
        request = QueryRequest(options=SessionOptions(allowed_tools=["Read"]))

        rendered = _rendered(await _collect(backend, _prompt("read it"), request))

        tool_result = rendered[3].message.content[0]
        assert tool_result.is_error
        assert "File not found" in tool_result.content

    @pytest.mark.asyncio
    async def test_abort_before_first_event(self, store, temp_dir, mock_env_vars):
        backend = _text_backend(store, temp_dir)
        request = QueryRequest(options=SessionOptions())
        request.abort_event.set()

        rendered = _rendered(await _collect(backend, _prompt("hello"), request))

        assert [t.type for t in rendered] == ["system", "user", "result"]
        assert rendered[-1].subtype == "interrupted"
