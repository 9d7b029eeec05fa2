"""Storage configuration model."""

from pydantic import BaseModel, Field

from .defaults import DEFAULT_BRANCHES_DIR, DEFAULT_TRANSCRIPTS_DIR


class StorageConfig(BaseModel):
    """Where transcripts and branch records live on disk."""

    transcripts_dir: str = Field(
        default=DEFAULT_TRANSCRIPTS_DIR,
        description="Directory holding <sessionId>.jsonl transcripts",
    )
    branches_dir: str | None = Field(
        default=DEFAULT_BRANCHES_DIR,
        description="Directory holding <sessionId>.branch.json records; null keeps them in memory",
    )
