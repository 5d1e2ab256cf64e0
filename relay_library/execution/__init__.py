"""Execution module for relay_library.

Public Interface:
    - ConversationRunner: Runs one agent query per conversation
    - QueryOutcome / QueryStatus: Result of a query
"""

from .runner import ConversationRunner
from .runner import QueryOutcome
from .runner import QueryStatus

__all__ = [
    "ConversationRunner",
    "QueryOutcome",
    "QueryStatus",
]
