"""
Session route registration.
"""

from fastapi import FastAPI

from . import abort, get, list, worldlines


def register_routes(app: FastAPI) -> None:
    """Register all session routes."""
    app.include_router(list.router)
    app.include_router(get.router)
    app.include_router(abort.router)
    app.include_router(worldlines.router)
