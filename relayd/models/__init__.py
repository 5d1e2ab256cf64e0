"""API models for relayd."""

from .api import AbortResponse
from .api import ApprovalRequest
from .api import ApprovalResolution
from .api import CommandCheckRequest
from .api import CommandCheckResponse
from .api import ConversationStatus
from .api import ErrorResponse
from .api import FastForwardRequest
from .api import FastForwardResponse
from .api import PendingApprovalInfo
from .api import QueryRequest
from .api import QueryResponse
from .api import ResolveRequest
from .api import SessionActivityResponse
from .api import WatchRateRequest
from .api import WatchRequest
from .api import WatchStatus

__all__ = [
    "AbortResponse",
    "ApprovalRequest",
    "ApprovalResolution",
    "CommandCheckRequest",
    "CommandCheckResponse",
    "ConversationStatus",
    "ErrorResponse",
    "FastForwardRequest",
    "FastForwardResponse",
    "PendingApprovalInfo",
    "QueryRequest",
    "QueryResponse",
    "ResolveRequest",
    "SessionActivityResponse",
    "WatchRateRequest",
    "WatchRequest",
    "WatchStatus",
]
