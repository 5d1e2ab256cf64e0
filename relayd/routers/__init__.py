"""API routers for the relayd daemon."""

from .approvals import router as approvals_router
from .conversations import router as conversations_router
from .sessions import router as sessions_router

__all__ = [
    "approvals_router",
    "conversations_router",
    "sessions_router",
]
