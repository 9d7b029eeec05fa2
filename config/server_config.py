"""Server configuration model."""

from pydantic import BaseModel, Field

from .defaults import DEFAULT_HOST, DEFAULT_PORT


class ServerConfig(BaseModel):
    host: str = Field(default=DEFAULT_HOST, description="Bind address")
    port: int = Field(default=DEFAULT_PORT, description="Bind port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins (overridden by CORS_ORIGINS)",
    )
