"""Relay library layer.

Business logic that sits between relayd (transport) and the agent's
append-only session log.

Public Interface:
    Modules:
    - sessions: Incremental log tailing, record classification, turn grouping
    - activity: Activity entries, tool result metrics, rolling text rendering
    - concurrency: Conversation gate, pending approvals, abort tracking
    - execution: Live agent query runner
    - sync: Turn replay (/ff) and watching
    - config: Configuration loading
    - storage: Path resolution
"""

from .models import LogRecord
from .models import Turn

__all__ = [
    "LogRecord",
    "Turn",
]
