"""
Agent backend package.

Runs session queries through a Pydantic AI agent and stores transcripts as
JSONL files.
"""

from .agent import AgentDeps, create_agent, get_anthropic_model_settings
from .pydantic_ai_backend import PydanticAIBackend, truncate_history, turns_to_model_messages
from .transcripts import TranscriptStore, normalize_session_id, parse_transcript

__all__ = [
    "AgentDeps",
    "create_agent",
    "get_anthropic_model_settings",
    "PydanticAIBackend",
    "turns_to_model_messages",
    "truncate_history",
    "TranscriptStore",
    "normalize_session_id",
    "parse_transcript",
]
