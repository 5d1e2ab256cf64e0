"""Models for relay library."""

from .activity import AbortedEntry
from .activity import ActivityEntry
from .activity import ContextClearedEntry
from .activity import ErrorEntry
from .activity import GeneratingEntry
from .activity import ModeChangedEntry
from .activity import SessionChangedEntry
from .activity import StartingEntry
from .activity import ThinkingEntry
from .activity import ToolCompleteEntry
from .activity import ToolResult
from .activity import ToolStartEntry
from .records import ContentBlock
from .records import LogRecord
from .records import MessageBody
from .turns import Segment
from .turns import Turn

__all__ = [
    "AbortedEntry",
    "ActivityEntry",
    "ContentBlock",
    "ContextClearedEntry",
    "ErrorEntry",
    "GeneratingEntry",
    "LogRecord",
    "MessageBody",
    "ModeChangedEntry",
    "Segment",
    "SessionChangedEntry",
    "StartingEntry",
    "ThinkingEntry",
    "ToolCompleteEntry",
    "ToolResult",
    "ToolStartEntry",
    "Turn",
]
