"""
Worldline endpoints.

Sibling sessions of a worldline and the navigation groups at each shared
history point.
"""

from fastapi import APIRouter, Depends, Query

from core.models import NavigationGroup, WorldlineSibling

from ...state import AppContext, get_context


router = APIRouter()


@router.get("/session/{sessionID}/worldlines")
async def worldlines_route(
    sessionID: str, context: AppContext = Depends(get_context)
) -> list[WorldlineSibling]:
    """All sessions of the worldline, root first."""
    return context.resolver.siblings_of(sessionID)


@router.get("/session/{sessionID}/worldlines/navigation")
async def navigation_route(
    sessionID: str, context: AppContext = Depends(get_context)
) -> list[NavigationGroup]:
    return context.resolver.navigation_groups(sessionID)


@router.get("/session/{sessionID}/branches")
async def branches_route(
    sessionID: str,
    messageUuid: str = Query(..., description="Branch point message uuid"),
    context: AppContext = Depends(get_context),
) -> list[WorldlineSibling]:
    """Branches created by replacing the given message."""
    return context.resolver.branches_at_message(sessionID, messageUuid)
