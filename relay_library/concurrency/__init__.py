"""Concurrency control for conversations.

Public Interface:
    - ConversationConcurrencyGate: At most one in-flight query per conversation
    - PendingApprovalRegistry: Outstanding human approvals as futures
    - SyncAbortTracker / QueryAbortTracker: Cooperative cancellation flags
"""

from .abort import AbortTracker
from .abort import QueryAbortTracker
from .abort import SyncAbortTracker
from .approvals import ApprovalContext
from .approvals import ApprovalKind
from .approvals import ApprovalRegistries
from .approvals import ApprovalSignal
from .approvals import PendingApproval
from .approvals import PendingApprovalRegistry
from .gate import WATCH_COMPATIBLE_COMMANDS
from .gate import ConversationConcurrencyGate
from .gate import check_watch_compatible
from .gate import get_conversation_key

__all__ = [
    "AbortTracker",
    "ApprovalContext",
    "ApprovalKind",
    "ApprovalRegistries",
    "ApprovalSignal",
    "ConversationConcurrencyGate",
    "PendingApproval",
    "PendingApprovalRegistry",
    "QueryAbortTracker",
    "SyncAbortTracker",
    "WATCH_COMPATIBLE_COMMANDS",
    "check_watch_compatible",
    "get_conversation_key",
]
