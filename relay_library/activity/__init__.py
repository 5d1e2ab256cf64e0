"""Activity entries for live and replayed agent queries.

Public Interface:
    - ActivityEntryBuilder: Build entries from records or agent events
    - ActivityLog: Ordered entries plus tool results
    - format_rolling_text: Bounded rendering of long or growing text
    - build_activity_log_text: Live status text for an activity log
"""

from .builder import ActivityEntryBuilder
from .formatter import TruncationMode
from .formatter import format_rolling_text
from .formatter import truncate_preview
from .log import ActivityLog
from .render import build_activity_log_text

__all__ = [
    "ActivityEntryBuilder",
    "ActivityLog",
    "TruncationMode",
    "build_activity_log_text",
    "format_rolling_text",
    "truncate_preview",
]
