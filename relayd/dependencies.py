"""Shared dependency factories for FastAPI endpoints."""

from fastapi import Request

from .services.watch_scheduler import WatchScheduler
from .state import RelayState


def get_relay_state(request: Request) -> RelayState:
    """Get the process-wide relay state created in the lifespan.

    Returns:
        RelayState instance
    """
    return request.app.state.relay


def get_watch_scheduler(request: Request) -> WatchScheduler:
    """Get the watch scheduler created in the lifespan.

    Returns:
        WatchScheduler instance
    """
    return request.app.state.watch_scheduler
