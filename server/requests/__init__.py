"""
WebSocket command models.

These are Pydantic models for validating and parsing inbound observer
commands.
"""

from .branch_request import BranchRequest
from .chat_request import ChatRequest
from .command import InboundCommand, parse_command
from .interrupt_request import InterruptRequest
from .resume_request import ResumeRequest
from .set_options_request import SetOptionsRequest

__all__ = [
    "ChatRequest",
    "SetOptionsRequest",
    "ResumeRequest",
    "BranchRequest",
    "InterruptRequest",
    "InboundCommand",
    "parse_command",
]
