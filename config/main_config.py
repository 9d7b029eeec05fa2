"""Main Config model."""

from pydantic import BaseModel, Field

from .server_config import ServerConfig
from .session_config import SessionConfig
from .storage_config import StorageConfig


class Config(BaseModel):
    """Main configuration model."""

    sessions: SessionConfig = Field(
        default_factory=SessionConfig,
        description="Defaults for new sessions",
    )
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="HTTP/WebSocket server settings",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Transcript and branch record locations",
    )
