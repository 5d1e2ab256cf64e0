"""Main FastAPI application for the relayd daemon.

Exposes relay_library over REST with SSE streaming: conversation gating,
turn replay and watching, live activity and pending approvals.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay_library.config import RelaySettings
from relay_library.config import load_config

from .routers import approvals_router
from .routers import conversations_router
from .routers import sessions_router
from .services import WatchScheduler
from .state import RelayState

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the relay state and watch scheduler, tear them down on exit.

    Args:
        app: FastAPI application instance
    """
    config = load_config()
    logger.info(f"Starting relayd on {config.host}:{config.port}")
    logger.info(f"Session logs: {config.projects_dir}")

    state = RelayState(config)
    scheduler = WatchScheduler(state)
    app.state.relay = state
    app.state.watch_scheduler = scheduler
    await scheduler.start()

    yield

    logger.info("Shutting down relayd")
    await scheduler.stop()
    await state.shutdown()


app = FastAPI(
    title="relayd",
    description="Session activity and conversation concurrency relay with SSE streaming",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=RelaySettings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(conversations_router)
app.include_router(sessions_router)
app.include_router(approvals_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        Welcome message with API information
    """
    return {
        "name": "relayd",
        "version": "0.1.0",
        "description": "Session activity and conversation concurrency relay",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/api/v1/health")
async def health_check() -> dict[str, str | float]:
    """Health check with uptime."""
    return {"status": "healthy", "uptimeSeconds": time.time() - _start_time}
