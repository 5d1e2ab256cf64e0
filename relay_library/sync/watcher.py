"""Watch state for conversations following a live session log.

While a conversation is watched, its session log is polled and new turns
are published as they appear. Only the watch-compatible commands may run
in a watched conversation.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime
from pathlib import Path

from ..concurrency.abort import SyncAbortTracker
from ..errors import ErrorCode
from ..errors import RelayError
from .message_sync import PostedUuidIndex
from .message_sync import SyncResult
from .message_sync import TurnPublisher
from .message_sync import sync_turns

logger = logging.getLogger(__name__)


@dataclass
class WatchState:
    conversation_key: str
    session_id: str
    session_path: Path
    offset: int = 0
    update_rate_seconds: float = 2.0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    polling: bool = False
    last_synced_count: int = 0


class WatchRegistry:
    """Active watches keyed by conversation."""

    def __init__(self: "WatchRegistry") -> None:
        self._watches: dict[str, WatchState] = {}

    def start(
        self: "WatchRegistry",
        conversation_key: str,
        session_id: str,
        session_path: Path,
        offset: int = 0,
        update_rate_seconds: float = 2.0,
        aborts: SyncAbortTracker | None = None,
    ) -> WatchState:
        """Begin watching.

        A sync abort flag left over for the conversation is cleared so it
        cannot cancel the first poll.

        Raises:
            RelayError: If the conversation is already being watched
        """
        if conversation_key in self._watches:
            raise RelayError(
                f"Conversation {conversation_key} is already watching",
                ErrorCode.WATCH_CONFLICT,
                recoverable=True,
            )
        state = WatchState(
            conversation_key=conversation_key,
            session_id=session_id,
            session_path=session_path,
            offset=offset,
            update_rate_seconds=update_rate_seconds,
        )
        if aborts is not None:
            aborts.clear(conversation_key)
        self._watches[conversation_key] = state
        logger.info(f"Started watching session {session_id} for {conversation_key} from offset {offset}")
        return state

    def stop(self: "WatchRegistry", conversation_key: str) -> bool:
        state = self._watches.pop(conversation_key, None)
        if state is None:
            return False
        logger.info(f"Stopped watching session {state.session_id} for {conversation_key}")
        return True

    def get(self: "WatchRegistry", conversation_key: str) -> WatchState | None:
        return self._watches.get(conversation_key)

    def is_watching(self: "WatchRegistry", conversation_key: str) -> bool:
        return conversation_key in self._watches

    def set_rate(self: "WatchRegistry", conversation_key: str, update_rate_seconds: float) -> bool:
        state = self._watches.get(conversation_key)
        if state is None:
            return False
        state.update_rate_seconds = update_rate_seconds
        return True

    def all(self: "WatchRegistry") -> list[WatchState]:
        return list(self._watches.values())

    def clear(self: "WatchRegistry") -> None:
        self._watches.clear()


async def poll_watch(
    state: WatchState,
    publisher: TurnPublisher,
    posted: PostedUuidIndex,
    aborts: SyncAbortTracker,
    **options,
) -> SyncResult | None:
    """Publish turns appended since the last poll.

    The offset only advances when every turn was published, so a failed or
    aborted poll rereads the same records and the posted-uuid index skips
    what already went out.

    Returns None when a previous poll of the same watch is still running.
    """
    if state.polling:
        logger.debug(f"Poll for {state.conversation_key} still running, skipping")
        return None

    state.polling = True
    try:
        result = await sync_turns(
            state.conversation_key,
            state.session_path,
            state.offset,
            publisher,
            posted,
            aborts,
            **options,
        )
        if result.all_succeeded and not result.was_aborted:
            state.offset = result.new_offset
        state.last_synced_count = result.synced_count
        return result
    finally:
        state.polling = False
