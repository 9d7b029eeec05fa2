"""
Tests for the domain models.
"""

import pytest

from core.models import (
    AssistantTurn,
    OtherBlock,
    OtherTurn,
    SessionOptions,
    StreamEventTurn,
    ToolUseBlock,
    UserTurn,
    extract_timestamp,
    gen_id,
    parse_turn,
    turn_text,
)


class TestParseTurn:
    """Test tagged turn parsing."""

    def test_user_turn_with_camel_case_keys(self):
        """Transcript keys sessionId/parentUuid populate the snake_case fields."""
        turn = parse_turn(
            {
                "type": "user",
                "uuid": "u1",
                "sessionId": "s1",
                "parentUuid": "p1",
                "message": {"role": "user", "content": "hi"},
            }
        )
        assert isinstance(turn, UserTurn)
        assert turn.session_id == "s1"
        assert turn.parent_uuid == "p1"

    def test_assistant_turn_blocks(self):
        turn = parse_turn(
            {
                "type": "assistant",
                "message": {
                    "role": "assistant",
                    "content": [
                        {"type": "text", "text": "Reading"},
                        {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "a"}},
                    ],
                },
            }
        )
        assert isinstance(turn, AssistantTurn)
        assert isinstance(turn.message.content[1], ToolUseBlock)
        assert turn_text(turn) == "Reading"

    def test_unknown_block_type_is_kept(self):
        turn = parse_turn(
            {
                "type": "assistant",
                "message": {"role": "assistant", "content": [{"type": "redacted_thinking", "data": "x"}]},
            }
        )
        block = turn.message.content[0]
        assert isinstance(block, OtherBlock)
        assert block.type == "redacted_thinking"

    def test_unknown_turn_type_is_kept(self):
        turn = parse_turn({"type": "tool_progress", "uuid": "x"})
        assert isinstance(turn, OtherTurn)
        assert turn.type == "tool_progress"

    def test_stream_event(self):
        turn = parse_turn({"type": "stream_event", "event": {"type": "text_delta"}})
        assert isinstance(turn, StreamEventTurn)


class TestExtractTimestamp:
    """Test timestamp normalization."""

    def test_number(self):
        assert extract_timestamp(1700000000) == 1700000000.0

    def test_numeric_string(self):
        assert extract_timestamp("1700000000.5") == 1700000000.5

    def test_iso_string(self):
        assert extract_timestamp("2023-11-14T22:13:20Z") == 1700000000.0

    @pytest.mark.parametrize("value", [None, True, "", "not a date", float("nan"), {}])
    def test_uninterpretable(self, value):
        assert extract_timestamp(value) is None


class TestSessionOptions:
    """Test session option models."""

    def test_defaults(self):
        options = SessionOptions()
        assert options.thinking_level == "default_on"
        assert options.allowed_tools == []
        assert options.report_mode is False

    def test_public_dump_hides_mcp_servers(self):
        options = SessionOptions(mcp_servers={"db": {"command": "serve"}})
        assert "mcp_servers" not in options.public_dump()

    def test_extra_options_are_kept(self):
        options = SessionOptions(customFlag=True)
        assert options.public_dump()["customFlag"] is True

    def test_invalid_thinking_level(self):
        with pytest.raises(ValueError):
            SessionOptions(thinking_level="maximum")


def test_gen_id_prefix():
    first = gen_id("msg_")
    assert first.startswith("msg_")
    assert first != gen_id("msg_")
