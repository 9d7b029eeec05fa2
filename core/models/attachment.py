"""AttachmentPayload model."""

from pydantic import BaseModel, Field


class AttachmentPayload(BaseModel):
    """User-supplied asset such as an image or document."""

    id: str | None = None
    name: str
    mediaType: str
    data: str = Field(description="Base64 encoded file content")
