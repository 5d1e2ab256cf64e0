"""Turn replay and watching for relay_library.

Public Interface:
    - sync_turns: Publish turns appended since an offset
    - fast_forward: Gate-holding replay of a whole session (/ff)
    - WatchRegistry / poll_watch: Follow a live session log
    - PostedUuidIndex: Uuids already shown per conversation
"""

from .message_sync import PostedUuidIndex
from .message_sync import SyncResult
from .message_sync import TurnPublisher
from .message_sync import fast_forward
from .message_sync import prepare_fast_forward
from .message_sync import run_fast_forward
from .message_sync import sync_turns
from .watcher import WatchRegistry
from .watcher import WatchState
from .watcher import poll_watch

__all__ = [
    "PostedUuidIndex",
    "SyncResult",
    "TurnPublisher",
    "WatchRegistry",
    "WatchState",
    "fast_forward",
    "poll_watch",
    "prepare_fast_forward",
    "run_fast_forward",
    "sync_turns",
]
