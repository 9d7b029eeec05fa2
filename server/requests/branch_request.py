"""BranchRequest model."""

from typing import Literal

from pydantic import BaseModel, Field

from core.models import AttachmentPayload


class BranchRequest(BaseModel):
    type: Literal["branch"] = "branch"
    sourceSessionId: str = ""
    branchAtMessageUuid: str = Field(default="", description="Message the new prompt replaces")
    content: str = ""
    attachments: list[AttachmentPayload] | None = None
