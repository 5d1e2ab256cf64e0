"""Per-conversation mutual exclusion for agent queries.

At most one agent query (or equivalent long operation such as a /ff
replay) runs per conversation. Acquire and release are synchronous so no
other task can interleave between the check and the insert.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from ..errors import ConversationBusyError
from ..errors import WatchConflictError

logger = logging.getLogger(__name__)

# Commands that coexist with an active watch
WATCH_COMPATIBLE_COMMANDS = frozenset({"status", "stop-watching", "stop", "help", "watch-rate"})


def get_conversation_key(channel_id: str, thread_ts: str | None = None) -> str:
    """Key scoping all per-conversation state: the channel, or channel and thread."""
    if thread_ts:
        return f"{channel_id}_{thread_ts}"
    return channel_id


def check_watch_compatible(conversation_key: str, command: str, watching: bool) -> None:
    """Reject commands that cannot run while the conversation is watched.

    Called before the gate is touched.

    Raises:
        WatchConflictError: If watching and the command is not on the allow-list
    """
    if watching and command.lower().lstrip("/") not in WATCH_COMPATIBLE_COMMANDS:
        raise WatchConflictError(conversation_key, command)


class ConversationConcurrencyGate:
    """Set of conversation keys with work in flight.

    Example:
        >>> gate = ConversationConcurrencyGate()
        >>> with gate.acquired("C123"):
        ...     assert gate.is_busy("C123")
        >>> assert not gate.is_busy("C123")
    """

    def __init__(self: "ConversationConcurrencyGate") -> None:
        self._busy: set[str] = set()

    def try_acquire(self: "ConversationConcurrencyGate", key: str) -> bool:
        """Mark ``key`` busy. Returns False if it already was."""
        if key in self._busy:
            logger.info(f"Conversation {key} busy, rejecting new work")
            return False
        self._busy.add(key)
        logger.debug(f"Acquired conversation {key}")
        return True

    def release(self: "ConversationConcurrencyGate", key: str) -> None:
        """Mark ``key`` idle. Safe to call when not held."""
        self._busy.discard(key)
        logger.debug(f"Released conversation {key}")

    def is_busy(self: "ConversationConcurrencyGate", key: str) -> bool:
        return key in self._busy

    def busy_keys(self: "ConversationConcurrencyGate") -> list[str]:
        return sorted(self._busy)

    def clear(self: "ConversationConcurrencyGate") -> None:
        self._busy.clear()

    @contextmanager
    def acquired(self: "ConversationConcurrencyGate", key: str) -> Iterator[None]:
        """Hold ``key`` for the block, releasing on every exit path.

        Raises:
            ConversationBusyError: If ``key`` is already held
        """
        if not self.try_acquire(key):
            raise ConversationBusyError(key)
        try:
            yield
        finally:
            self.release(key)
