"""
List sessions endpoint.
"""

from fastapi import APIRouter, Depends

from core.models import SessionInfo

from ...state import AppContext, get_context


router = APIRouter()


@router.get("/session")
async def list_sessions_route(context: AppContext = Depends(get_context)) -> list[SessionInfo]:
    """List all sessions sorted by most recently updated."""
    return [session.info() for session in context.registry.sessions_by_recency]
