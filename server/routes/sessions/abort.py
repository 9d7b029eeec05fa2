"""
Abort session endpoint.
"""

from fastapi import APIRouter, Depends, HTTPException

from core import NotFoundError

from ...state import AppContext, get_context


router = APIRouter()


@router.post("/session/{sessionID}/abort")
async def abort_session_route(sessionID: str, context: AppContext = Depends(get_context)) -> bool:
    """Interrupt the session's in-flight query."""
    try:
        session = context.registry.require_session(sessionID)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    was_busy = session.is_busy
    session.interrupt()
    return was_busy
