"""
Worldline session server.

Binds the session engine to a WebSocket channel for observers plus HTTP
endpoints for listing sessions and navigating worldlines.
"""

from .app import app
from .routes import register_routes
from .state import AppContext, build_context, get_context

# Register all routes with the app
register_routes(app)

__all__ = ["app", "AppContext", "build_context", "get_context"]
