"""
Route registration for the worldline API.
"""

from fastapi import FastAPI

from . import events, health, sessions, ws


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application."""
    app.include_router(events.router)
    app.include_router(health.router)
    app.include_router(ws.router)
    sessions.register_routes(app)
