"""Logging setup for the session server."""

import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Generator, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEBUG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Libraries that log every request or model call at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "anthropic": logging.WARNING,
    "sse_starlette": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging.

    Args:
        level: Level name. Falls back to ``LOG_LEVEL``, then INFO.
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=DEBUG_FORMAT if log_level <= logging.DEBUG else LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, log_level))


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Generator[None, None, None]:
    """Log how long the wrapped block took, even when it raises.

    Example:
        with log_timing(logger, "Resume of session-a", level=logging.INFO):
            await session.resume_from("session-a")
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s took %.1fms", operation, (time.perf_counter() - start) * 1000)
