"""Session defaults configuration model."""

from typing import Any

from pydantic import BaseModel, Field

from .defaults import (
    DEFAULT_ALLOWED_TOOLS,
    DEFAULT_MAX_TURNS,
    DEFAULT_MODEL,
    DEFAULT_PERMISSION_MODE,
    DEFAULT_THINKING_LEVEL,
)


class SessionConfig(BaseModel):
    """Defaults applied to every new session before per-session overrides."""

    model: str = Field(
        default=DEFAULT_MODEL,
        description="Model ID used for queries",
    )
    max_turns: int = Field(
        default=DEFAULT_MAX_TURNS,
        description="Maximum model requests per query",
    )
    allowed_tools: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_TOOLS),
        description="Tools the agent may call",
    )
    permission_mode: str = Field(
        default=DEFAULT_PERMISSION_MODE,
        description="Permission mode passed to the backend",
    )
    thinking_level: str = Field(
        default=DEFAULT_THINKING_LEVEL,
        description="Extended thinking: 'off' or 'default_on'",
    )
    report_mode: bool = Field(
        default=False,
        description="Append report instructions to the system prompt",
    )
    mcp_servers: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra server definitions handed to the backend",
    )
