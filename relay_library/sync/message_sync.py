"""Replay session log turns into a conversation.

Used by fast-forward (/ff) to catch a conversation up with a session that
ran elsewhere, and by watch polling to follow a session as it grows. Turns
are published in log order; a turn is republished whole when any of its
uuids has not been posted to the conversation yet.

Contract:
- Inputs: Session log path and offset, a turn publisher
- Outputs: SyncResult with the offset to resume from
- Side Effects: Publishes turns, records posted uuids, clears the sync
  abort flag when it stops early
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ..concurrency.abort import SyncAbortTracker
from ..concurrency.gate import ConversationConcurrencyGate
from ..errors import ConversationBusyError
from ..errors import SessionFileMissingError
from ..models import Turn
from ..sessions.reader import read_new_lines
from ..sessions.records import DEFAULT_PLANS_MARKER
from ..sessions.records import filter_records
from ..sessions.turns import group_turns
from ..sessions.turns import turns_with_new_uuids

logger = logging.getLogger(__name__)

TurnPublisher = Callable[[str, Turn], Awaitable[None]]
ProgressCallback = Callable[[str, int, int], Awaitable[None] | None]

MAX_RETRY_DELAY_SECONDS = 30.0


@dataclass
class SyncResult:
    new_offset: int
    synced_count: int = 0
    total_to_sync: int = 0
    was_aborted: bool = False
    all_succeeded: bool = True


class PostedUuidIndex:
    """Record uuids already shown in each conversation."""

    def __init__(self: "PostedUuidIndex") -> None:
        self._posted: dict[str, set[str]] = {}

    def posted(self: "PostedUuidIndex", conversation_key: str) -> set[str]:
        return set(self._posted.get(conversation_key, set()))

    def is_posted(self: "PostedUuidIndex", conversation_key: str, uuid: str) -> bool:
        return uuid in self._posted.get(conversation_key, set())

    def mark_posted(self: "PostedUuidIndex", conversation_key: str, uuids: list[str]) -> None:
        self._posted.setdefault(conversation_key, set()).update(uuids)

    def clear(self: "PostedUuidIndex", conversation_key: str) -> None:
        self._posted.pop(conversation_key, None)


async def _publish_with_retry(
    publisher: TurnPublisher,
    conversation_key: str,
    turn: Turn,
    max_attempts: int | None,
    retry_delay: float,
    aborts: SyncAbortTracker,
) -> bool:
    """Publish one turn, retrying with backoff. ``max_attempts=None`` retries until aborted."""
    attempt = 0
    delay = retry_delay
    while True:
        attempt += 1
        try:
            await publisher(conversation_key, turn)
            return True
        except Exception as e:
            if max_attempts is not None and attempt >= max_attempts:
                logger.error(f"Giving up publishing turn to {conversation_key} after {attempt} attempts: {e}")
                return False
            if aborts.is_set(conversation_key):
                return False
            logger.warning(f"Publishing turn to {conversation_key} failed (attempt {attempt}), retrying in {delay}s: {e}")
            await asyncio.sleep(delay)
            delay = min(delay * 2, MAX_RETRY_DELAY_SECONDS)


async def sync_turns(
    conversation_key: str,
    session_path: Path,
    since_offset: int,
    publisher: TurnPublisher,
    posted: PostedUuidIndex,
    aborts: SyncAbortTracker,
    pacing_delay_ms: int = 0,
    max_attempts: int | None = 3,
    retry_delay: float = 0.5,
    on_progress: ProgressCallback | None = None,
    plans_marker: str = DEFAULT_PLANS_MARKER,
) -> SyncResult:
    """Publish turns appended to the session log since ``since_offset``.

    The abort flag is checked between turns only. On abort the sync stops,
    clears the flag and reports ``was_aborted``; turns not yet published are
    picked up by the next sync because their uuids were never recorded.

    Args:
        conversation_key: Conversation receiving the turns
        session_path: Session log path
        since_offset: Offset to read from
        publisher: Posts one turn to the conversation
        posted: Uuids already shown per conversation
        aborts: Sync abort flags
        pacing_delay_ms: Pause between published turns
        max_attempts: Publish attempts per turn (None retries until aborted)
        retry_delay: Initial retry delay in seconds
        on_progress: Called with (conversation_key, synced, total) after each turn
        plans_marker: Path fragment identifying plan documents

    Returns:
        SyncResult
    """
    tail = read_new_lines(session_path, since_offset)
    records = filter_records(tail.records)
    if not records:
        return SyncResult(new_offset=tail.new_offset)

    to_sync = turns_with_new_uuids(group_turns(records, plans_marker), posted.posted(conversation_key))
    total = len(to_sync)
    logger.info(f"Syncing {total} turns to {conversation_key} from offset {since_offset}")

    synced = 0
    all_succeeded = True
    for index, turn in enumerate(to_sync):
        if aborts.is_set(conversation_key):
            aborts.clear(conversation_key)
            logger.info(f"Sync to {conversation_key} aborted after {synced}/{total} turns")
            return SyncResult(
                new_offset=tail.new_offset,
                synced_count=synced,
                total_to_sync=total,
                was_aborted=True,
                all_succeeded=all_succeeded,
            )

        published = await _publish_with_retry(publisher, conversation_key, turn, max_attempts, retry_delay, aborts)
        if published:
            posted.mark_posted(conversation_key, turn.all_message_uuids)
            synced += 1
        else:
            all_succeeded = False

        if on_progress is not None:
            outcome = on_progress(conversation_key, synced, total)
            if inspect.isawaitable(outcome):
                await outcome

        if pacing_delay_ms > 0 and index < total - 1:
            await asyncio.sleep(pacing_delay_ms / 1000)

    logger.info(f"Synced {synced}/{total} turns to {conversation_key}")
    return SyncResult(
        new_offset=tail.new_offset,
        synced_count=synced,
        total_to_sync=total,
        was_aborted=False,
        all_succeeded=all_succeeded,
    )


def prepare_fast_forward(
    conversation_key: str,
    session_id: str,
    session_path: Path,
    gate: ConversationConcurrencyGate,
    aborts: SyncAbortTracker | None = None,
) -> None:
    """Validate a /ff request and take the conversation gate.

    Synchronous so nothing can interleave between the checks and the
    acquire. A stale sync abort flag is cleared once the gate is held. On
    success the caller must run ``run_fast_forward``, which releases the
    gate.

    Raises:
        SessionFileMissingError: If the session log does not exist
        ConversationBusyError: If the conversation has work in flight
    """
    if not session_path.is_file():
        raise SessionFileMissingError(session_id, str(session_path))
    if not gate.try_acquire(conversation_key):
        raise ConversationBusyError(conversation_key)
    if aborts is not None:
        aborts.clear(conversation_key)


async def run_fast_forward(
    conversation_key: str,
    session_path: Path,
    gate: ConversationConcurrencyGate,
    publisher: TurnPublisher,
    posted: PostedUuidIndex,
    aborts: SyncAbortTracker,
    since_offset: int = 0,
    **options,
) -> SyncResult:
    """Replay turns with the gate already held, releasing it and the abort flag on exit."""
    try:
        return await sync_turns(
            conversation_key,
            session_path,
            since_offset,
            publisher,
            posted,
            aborts,
            **options,
        )
    finally:
        aborts.clear(conversation_key)
        gate.release(conversation_key)


async def fast_forward(
    conversation_key: str,
    session_id: str,
    session_path: Path,
    gate: ConversationConcurrencyGate,
    publisher: TurnPublisher,
    posted: PostedUuidIndex,
    aborts: SyncAbortTracker,
    since_offset: int = 0,
    **options,
) -> SyncResult:
    """Catch a conversation up with a session log (/ff).

    Raises:
        SessionFileMissingError: If the session log does not exist
        ConversationBusyError: If the conversation has work in flight
    """
    prepare_fast_forward(conversation_key, session_id, session_path, gate, aborts)
    return await run_fast_forward(
        conversation_key,
        session_path,
        gate,
        publisher,
        posted,
        aborts,
        since_offset,
        **options,
    )
