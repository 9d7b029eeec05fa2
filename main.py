"""
Worldline session server entry point.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from config import get_config, get_working_directory
from server import app, build_context
from server.logging_config import setup_logging

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the application context and shut sessions down on exit."""
    config = get_config()
    if getattr(app.state, "context", None) is None:
        logger.info("Starting session server")
        logger.info("Model: %s", config.sessions.model)
        logger.info("Working directory: %s", get_working_directory())
        app.state.context = build_context(config)

    yield

    logger.info("Shutting down sessions...")
    await app.state.context.registry.shutdown()


app.router.lifespan_context = lifespan


def main() -> None:
    """Start the session server."""
    config = get_config().server
    logger.info("Server listening on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
