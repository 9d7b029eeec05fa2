"""Session options and state models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ThinkingLevel = Literal["off", "default_on"]


class SessionOptions(BaseModel):
    """Effective configuration for queries issued by a session."""

    model_config = ConfigDict(extra="allow")

    model: str | None = Field(
        default=None,
        description="Model ID passed to the backend (backend default when unset)",
    )
    max_turns: int | None = Field(
        default=None,
        description="Upper bound on model requests per query",
    )
    allowed_tools: list[str] = Field(
        default_factory=list,
        description="Tools the agent may use",
    )
    permission_mode: str | None = None
    thinking_level: ThinkingLevel = "default_on"
    cwd: str | None = Field(
        default=None,
        description="Working directory of the agent",
    )
    report_mode: bool = False
    system_prompt: str | None = None
    mcp_servers: dict[str, Any] = Field(
        default_factory=dict,
        description="Server definitions handed to the backend, never sent to observers",
    )

    def public_dump(self) -> dict[str, Any]:
        """Serializable view of the options for observers."""
        return self.model_dump(mode="json", exclude={"mcp_servers"})


class SessionStateUpdate(BaseModel):
    isBusy: bool | None = None
    isLoading: bool | None = None
    options: dict[str, Any] | None = None
    error: str | None = None


class SessionInfo(BaseModel):
    """Listing entry for a session."""

    sessionId: str | None
    summary: str | None = None
    lastModifiedTime: float
    isBusy: bool
    isLoading: bool
    messageCount: int
    error: str | None = None
