"""InterruptRequest model."""

from typing import Literal

from pydantic import BaseModel


class InterruptRequest(BaseModel):
    type: Literal["interrupt"] = "interrupt"
