"""
Agent configuration using Pydantic AI.

Creates the agent that executes session queries, with a ``Read`` tool scoped
to the session's working directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic_ai import Agent, ModelRetry, RunContext
from pydantic_ai.models import Model
from pydantic_ai.models.anthropic import AnthropicModelSettings
from pydantic_ai.tools import ToolDefinition

from config.defaults import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_THINKING_BUDGET_TOKENS,
    READ_TOOL_NAME,
)

logger = logging.getLogger(__name__)

# Tool output truncation constants
MAX_LINE_LENGTH = 2000
DEFAULT_READ_LIMIT = 2000


@dataclass
class AgentDeps:
    """Per-query dependencies available to tools and instructions."""

    working_dir: Path
    allowed_tools: list[str] = field(default_factory=list)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


def model_name(model_id: str) -> str:
    """Qualify a bare model ID with the anthropic provider."""
    return model_id if ":" in model_id else f"anthropic:{model_id}"


def get_anthropic_model_settings(enable_thinking: bool = True) -> AnthropicModelSettings:
    """Get Anthropic model settings with optional extended thinking.

    Args:
        enable_thinking: Whether to enable extended thinking (default True)

    Returns:
        AnthropicModelSettings configured for the agent
    """
    settings: AnthropicModelSettings = {
        "max_tokens": DEFAULT_MAX_TOKENS,  # Must exceed the thinking budget
    }

    if enable_thinking:
        settings["anthropic_thinking"] = {
            "type": "enabled",
            "budget_tokens": DEFAULT_THINKING_BUDGET_TOKENS,
        }

    return settings


def _truncate_long_lines(content: str, max_line_length: int = MAX_LINE_LENGTH) -> tuple[str, bool]:
    truncated = False
    lines = []
    for line in content.splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        if len(stripped) > max_line_length:
            lines.append(stripped[:max_line_length] + "...\n")
            truncated = True
        else:
            lines.append(line)
    return "".join(lines), truncated


def resolve_in_working_dir(working_dir: Path, file_path: str) -> Path:
    """
    Resolve a tool path against the working directory.

    Raises:
        ModelRetry: If the path escapes the working directory
    """
    root = working_dir.resolve()
    path = (root / file_path).resolve()
    if not path.is_relative_to(root):
        raise ModelRetry(f"Path is outside the working directory: {file_path}")
    return path


async def _only_if_allowed(ctx: RunContext[AgentDeps], tool_def: ToolDefinition) -> ToolDefinition | None:
    return tool_def if tool_def.name in ctx.deps.allowed_tools else None


def create_agent(model: Model | str | None = None) -> Agent[AgentDeps, str]:
    """
    Create the session agent.

    Args:
        model: Model instance or name (defaults to DEFAULT_MODEL on anthropic)

    Returns:
        Configured Pydantic AI Agent
    """
    agent: Agent[AgentDeps, str] = Agent(
        model or model_name(DEFAULT_MODEL),
        deps_type=AgentDeps,
    )

    @agent.instructions
    def session_instructions(ctx: RunContext[AgentDeps]) -> str:
        return ctx.deps.system_prompt

    @agent.tool(name=READ_TOOL_NAME, prepare=_only_if_allowed)
    async def read_file(
        ctx: RunContext[AgentDeps],
        file_path: str,
        offset: int = 0,
        limit: int = DEFAULT_READ_LIMIT,
    ) -> str:
        """Read a UTF-8 text file from the working directory.

        Lines longer than 2000 characters are truncated.

        Args:
            file_path: Path relative to the working directory
            offset: Line number to start reading from (0-based)
            limit: Maximum number of lines to read
        """
        path = resolve_in_working_dir(ctx.deps.working_dir, file_path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                all_lines = f.readlines()
        except FileNotFoundError:
            raise ModelRetry(f"File not found: {file_path}")
        except IsADirectoryError:
            raise ModelRetry(f"Path is a directory: {file_path}")
        except UnicodeDecodeError:
            raise ModelRetry(f"File is not UTF-8 text: {file_path}")

        selected = all_lines[offset : offset + limit] if limit > 0 else all_lines[offset:]
        content, truncated = _truncate_long_lines("".join(selected))
        if truncated:
            content += f"\n\n[Note: lines longer than {MAX_LINE_LENGTH} chars were truncated]"
        logger.debug("Read %s (%d lines)", path, len(selected))
        return content

    return agent
