"""HTTP request logging."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

# Long-lived streams are logged when they open, not when they finish
STREAMING_PATHS = frozenset({"/global/event"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each HTTP request with its status and duration.

    5xx responses log at ERROR, 4xx and slow responses at WARNING, and
    everything else at DEBUG so that polling the session list stays quiet.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path in STREAMING_PATHS:
            logger.info("Event stream opened by %s", request.client.host if request.client else "unknown")
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400 or elapsed_ms > SLOW_REQUEST_MS:
            level = logging.WARNING
        else:
            level = logging.DEBUG
        logger.log(level, "%s %s -> %d (%.1fms)", request.method, path, status, elapsed_ms)
        return response
