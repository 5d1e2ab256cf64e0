"""Process-wide relay state.

Created once in the application lifespan and handed to routes through
``dependencies.get_relay_state``.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from relay_library.activity.builder import ActivityEntryBuilder
from relay_library.activity.render import build_activity_log_text
from relay_library.concurrency import ApprovalRegistries
from relay_library.concurrency import ConversationConcurrencyGate
from relay_library.concurrency import PendingApproval
from relay_library.concurrency import QueryAbortTracker
from relay_library.concurrency import SyncAbortTracker
from relay_library.concurrency.approvals import ApprovalSignal
from relay_library.config.settings import RelaySettings
from relay_library.execution import ConversationRunner
from relay_library.models import Turn
from relay_library.sync import PostedUuidIndex
from relay_library.sync import WatchRegistry

from .streaming import ConversationEventHub

logger = logging.getLogger(__name__)


def describe_resolution(value: Any) -> dict[str, Any]:
    """JSON-safe form of an approval resolution value."""
    if isinstance(value, ApprovalSignal):
        return {"signal": value.name.lower(), "value": None}
    return {"signal": None, "value": value}


class RelayState:
    """Owns every per-process collection the relay mutates."""

    def __init__(self: "RelayState", settings: RelaySettings) -> None:
        self.settings = settings
        self.hub = ConversationEventHub()
        self.gate = ConversationConcurrencyGate()
        self.query_aborts = QueryAbortTracker()
        self.sync_aborts = SyncAbortTracker()
        self.watches = WatchRegistry()
        self.posted = PostedUuidIndex()
        self.approvals = ApprovalRegistries(on_resolved=self._on_approval_resolved)
        self.runner = ConversationRunner(
            self.gate,
            self.query_aborts,
            self.approvals,
            settings=settings,
            is_watching=self.watches.is_watching,
        )
        self.sync_offsets: dict[str, int] = {}
        self.active_syncs: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    async def publish_turn(self: "RelayState", conversation_key: str, turn: Turn) -> None:
        await self.hub.emit(conversation_key, "turn", turn.model_dump(mode="json", by_alias=True))

    async def publish_progress(self: "RelayState", conversation_key: str, synced: int, total: int) -> None:
        await self.hub.emit(conversation_key, "sync:progress", {"synced": synced, "total": total})

    async def publish_activity(self: "RelayState", conversation_key: str, builder: ActivityEntryBuilder) -> None:
        await self.hub.emit(
            conversation_key,
            "activity",
            {
                "text": build_activity_log_text(builder.log),
                "entries": [entry.model_dump(mode="json", by_alias=True) for entry in builder.log.live_view()],
            },
        )

    async def _on_approval_resolved(self: "RelayState", entry: PendingApproval, value: Any) -> None:
        await self.hub.emit(
            entry.context.conversation_key,
            "approval:resolved",
            {
                "approvalId": entry.id,
                "kind": entry.kind.value,
                "messageTs": entry.context.message_ts,
                **describe_resolution(value),
            },
        )

    def spawn(self: "RelayState", coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Run a background task, logging its failure."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self: "RelayState", task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error}")

    async def shutdown(self: "RelayState") -> None:
        self.approvals.clear()
        self.watches.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.gate.clear()
