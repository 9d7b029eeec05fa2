"""SetOptionsRequest model."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class SetOptionsRequest(BaseModel):
    type: Literal["setOptions"] = "setOptions"
    options: dict[str, Any] = Field(default_factory=dict, description="Partial session options")
