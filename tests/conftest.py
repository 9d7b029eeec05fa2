"""
Shared pytest fixtures for all tests.
"""
import asyncio
import tempfile
import uuid
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, Iterator

import pytest

from core import QueryRequest
from core.models import (
    AssistantTurn,
    ResultTurn,
    SessionNotification,
    SystemTurn,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
    TurnPayload,
    UserTurn,
)


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing."""
    # Set a test API key to avoid requiring real credentials
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key-123")
    return monkeypatch


# =============================================================================
# Turn factories
# =============================================================================


class TurnFactory:
    """Builds transcript turns with sensible defaults."""

    def __init__(self, session_id: str = "session-a"):
        self.session_id = session_id
        self._clock = 1_700_000_000.0

    def _tick(self) -> float:
        self._clock += 1
        return self._clock

    def user(
        self,
        uuid: str,
        text: str,
        parent: str | None = None,
        timestamp: float | str | None = None,
        parent_tool_use_id: str | None = None,
    ) -> UserTurn:
        return UserTurn(
            uuid=uuid,
            session_id=self.session_id,
            parent_uuid=parent,
            timestamp=timestamp if timestamp is not None else self._tick(),
            message=TurnPayload(role="user", content=text),
            parent_tool_use_id=parent_tool_use_id,
        )

    def assistant(self, uuid: str, text: str, parent: str | None = None) -> AssistantTurn:
        return AssistantTurn(
            uuid=uuid,
            session_id=self.session_id,
            parent_uuid=parent,
            timestamp=self._tick(),
            message=TurnPayload(role="assistant", content=[TextBlock(text=text)]),
        )

    def tool_use(
        self,
        uuid: str,
        tool_use_id: str,
        name: str = "Read",
        tool_input: dict[str, Any] | None = None,
        parent: str | None = None,
    ) -> AssistantTurn:
        return AssistantTurn(
            uuid=uuid,
            session_id=self.session_id,
            parent_uuid=parent,
            timestamp=self._tick(),
            message=TurnPayload(
                role="assistant",
                content=[ToolUseBlock(id=tool_use_id, name=name, input=tool_input or {})],
            ),
        )

    def tool_result(
        self,
        uuid: str,
        tool_use_id: str,
        content: str = "ok",
        is_error: bool = False,
        parent: str | None = None,
    ) -> UserTurn:
        return UserTurn(
            uuid=uuid,
            session_id=self.session_id,
            parent_uuid=parent,
            timestamp=self._tick(),
            message=TurnPayload(
                role="user",
                content=[ToolResultBlock(tool_use_id=tool_use_id, content=content, is_error=is_error)],
            ),
        )

    def system(self, uuid: str = "sys-init", cwd: str | None = None) -> SystemTurn:
        return SystemTurn(uuid=uuid, session_id=self.session_id, subtype="init", cwd=cwd)

    def result(self, uuid: str = "result-1", text: str = "done") -> ResultTurn:
        return ResultTurn(uuid=uuid, session_id=self.session_id, subtype="success", result=text)


@pytest.fixture
def turns() -> TurnFactory:
    return TurnFactory()


# =============================================================================
# Observers and backends
# =============================================================================


class RecordingClient:
    """SessionClient that keeps every notification it receives."""

    def __init__(self) -> None:
        self.session_id: str | None = None
        self.notifications: list[SessionNotification] = []

    def receive_session_message(self, notification: SessionNotification) -> None:
        self.notifications.append(notification)

    def of_type(self, notification_type: str) -> list[SessionNotification]:
        return [n for n in self.notifications if n.type == notification_type]

    def busy_flags(self) -> list[bool]:
        return [
            n.state.isBusy
            for n in self.of_type("session_state_changed")
            if n.state.isBusy is not None
        ]

    def clear(self) -> None:
        self.notifications.clear()


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def other_client() -> RecordingClient:
    return RecordingClient()


class FakeBackend:
    """
    Scripted AgentBackend.

    Each query replies with one assistant text turn and a result turn.
    Transcripts are kept in memory and forks copy history up to
    ``resume_session_at`` the way the real backend does.
    """

    def __init__(self) -> None:
        self.transcripts: dict[str, list[Turn]] = {}
        self.requests: list[QueryRequest] = []
        self.prompts: list[UserTurn] = []
        self.reply = "Hello from the agent"
        self.stream_error: Exception | None = None
        self.load_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.load_calls = 0
        self._counter = 0

    def new_session_id(self) -> str:
        self._counter += 1
        return f"session-{self._counter}"

    async def load_persisted_turns(self, session_id: str) -> list[Turn]:
        self.load_calls += 1
        await asyncio.sleep(0)
        if self.load_error is not None:
            raise self.load_error
        return [turn.model_copy(deep=True) for turn in self.transcripts.get(session_id, [])]

    def _history_for(self, request: QueryRequest) -> tuple[str, list[Turn]]:
        if request.resume and not request.fork_session:
            return request.resume, self.transcripts.setdefault(request.resume, [])

        session_id = self.new_session_id()
        history: list[Turn] = []
        if request.resume:
            for turn in self.transcripts.get(request.resume, []):
                history.append(turn.model_copy(update={"session_id": session_id}))
                if request.resume_session_at and turn.uuid == request.resume_session_at:
                    break
        self.transcripts[session_id] = history
        return session_id, history

    async def stream_turns(
        self, prompt: str | AsyncIterable[UserTurn], request: QueryRequest
    ) -> AsyncIterator[Turn]:
        self.requests.append(request)
        session_id, history = self._history_for(request)
        parent = history[-1].uuid if history else None

        yield SystemTurn(uuid=str(uuid.uuid4()), session_id=session_id, subtype="init")

        if isinstance(prompt, str):
            prompt_turns = [UserTurn(message=TurnPayload(role="user", content=prompt))]
        else:
            prompt_turns = [turn async for turn in prompt]
        for user_turn in prompt_turns:
            echoed = user_turn.model_copy(
                update={
                    "uuid": user_turn.uuid or str(uuid.uuid4()),
                    "session_id": session_id,
                    "parent_uuid": parent,
                }
            )
            history.append(echoed)
            self.prompts.append(echoed)
            parent = echoed.uuid
            yield echoed

        if self.gate is not None:
            await self.gate.wait()
        if self.stream_error is not None:
            raise self.stream_error

        reply = AssistantTurn(
            uuid=str(uuid.uuid4()),
            session_id=session_id,
            parent_uuid=parent,
            message=TurnPayload(role="assistant", content=[TextBlock(text=self.reply)]),
        )
        history.append(reply)
        yield reply
        yield ResultTurn(uuid=str(uuid.uuid4()), session_id=session_id, subtype="success", result=self.reply)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
