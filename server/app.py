"""
FastAPI application setup and configuration.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_config
from server.middleware import RequestLoggingMiddleware


# =============================================================================
# Constants
# =============================================================================

API_TITLE = "Worldline Session API"
API_VERSION = "1.0.0"


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(title=API_TITLE, version=API_VERSION)


# =============================================================================
# CORS Configuration
# =============================================================================

# allow_origins=["*"] accepts any origin. Restrict it in production with the
# CORS_ORIGINS environment variable or server.cors_origins in worldline.jsonc:
# Example: CORS_ORIGINS="https://example.com,https://app.example.com"

cors_origins = get_config().server.cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware (added after CORS so it runs first)
app.add_middleware(RequestLoggingMiddleware)
