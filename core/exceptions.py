"""
Core domain exceptions.

These exceptions are transport-agnostic and should be caught by the server
layer to convert into appropriate HTTP responses or error frames.
"""

from enum import Enum


class CoreError(Exception):
    """Base exception for all core errors."""

    pass


class NotFoundError(CoreError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class InvalidOperationError(CoreError):
    """Raised when an operation cannot be performed in the current state."""

    pass


class ErrorCode(str, Enum):
    """Stable codes carried by error responses to observers."""

    EMPTY_MESSAGE = "empty_message"
    INVALID_SESSION_ID = "invalid_session_id"
    RESUME_FAILED = "resume_failed"
    BRANCH_FAILED = "branch_failed"
    UNREGISTERED_CLIENT = "unregistered_client"
    INVALID_PAYLOAD = "invalid_payload"
    UNSUPPORTED_MESSAGE_TYPE = "unsupported_message_type"
    INVALID_SOURCE_SESSION = "invalid_source_session"
    INVALID_BRANCH_POINT = "invalid_branch_point"
    SET_OPTIONS_FAILED = "set_options_failed"


class ProtocolError(CoreError):
    """Raised when an inbound command is rejected before any state is touched."""

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)
