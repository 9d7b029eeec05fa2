"""
Get session endpoint.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from core import NotFoundError
from core.models import ChatMessage, SessionInfo

from ...state import AppContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionDetail(SessionInfo):
    options: dict
    messages: list[ChatMessage]


@router.get("/session/{sessionID}")
async def get_session_route(
    sessionID: str, context: AppContext = Depends(get_context)
) -> SessionDetail:
    """Get session details with its current messages."""
    try:
        session = context.registry.require_session(sessionID)
    except NotFoundError:
        logger.debug("Session not found: %s", sessionID)
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionDetail(
        **session.info().model_dump(),
        options=session.options.public_dump(),
        messages=session.messages,
    )
