"""ResumeRequest model."""

from typing import Literal

from pydantic import BaseModel


class ResumeRequest(BaseModel):
    type: Literal["resume"] = "resume"
    sessionId: str = ""
