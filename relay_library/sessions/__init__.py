"""Session log reading for relay_library.

Public Interface:
    - read_new_lines: Incremental read of complete records past an offset
    - SessionLogTailer: Offset-holding reader
    - filter_records: Keep conversational records
    - group_turns: Group records into turns
    - watch_session_records: Async tail of a growing log
"""

from .reader import SessionLogTailer
from .reader import TailResult
from .reader import get_file_size
from .reader import get_session_file_path
from .reader import read_new_lines
from .reader import read_session_records
from .records import displayable_text
from .records import extract_text_content
from .records import filter_records
from .records import find_last_user_message
from .records import is_user_text_turn_starter
from .turns import group_turns
from .watch import watch_session_records

__all__ = [
    "SessionLogTailer",
    "TailResult",
    "displayable_text",
    "extract_text_content",
    "filter_records",
    "find_last_user_message",
    "get_file_size",
    "get_session_file_path",
    "group_turns",
    "is_user_text_turn_starter",
    "read_new_lines",
    "read_session_records",
    "watch_session_records",
]
