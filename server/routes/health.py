"""
Health check endpoint.
"""

from fastapi import APIRouter, Depends

from ..state import AppContext, get_context


router = APIRouter()


@router.get("/health")
async def health(context: AppContext = Depends(get_context)) -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "sessions": len(context.registry.sessions),
        "clients": context.handler.client_count,
    }
