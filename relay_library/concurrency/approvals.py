"""Pending human approvals bridged to the agent loop.

Registering an approval creates an ``asyncio.Future`` the agent side awaits.
The future is completed exactly once, by an answer, an abort or expiry, and
the entry is removed from the registry at that moment.

Contract:
- Inputs: Approval ids and answers from button handlers
- Outputs: Futures resolved with answers or ApprovalSignal values
- Side Effects: Runs an optional UI cleanup hook after resolution
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import DuplicateApprovalError

logger = logging.getLogger(__name__)


class ApprovalKind(str, Enum):
    TOOL = "tool"
    PLAN = "plan"
    QUESTION = "question"


class ApprovalSignal(Enum):
    """Resolution values that are not answers. Compare by identity."""

    ABORTED = "__ABORTED__"
    EXPIRED = "__EXPIRED__"


@dataclass(frozen=True)
class ApprovalContext:
    """Where the approval prompt lives, for cleanup after resolution.

    ``message_ts`` is optional; without it cleanup is skipped.
    """

    conversation_key: str
    channel_id: str | None = None
    thread_ts: str | None = None
    message_ts: str | None = None


@dataclass
class PendingApproval:
    id: str
    kind: ApprovalKind
    future: asyncio.Future
    context: ApprovalContext
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


CleanupHook = Callable[[PendingApproval, Any], Awaitable[None] | None]


class PendingApprovalRegistry:
    """Outstanding approvals of one kind, keyed by approval id.

    Example:
        >>> registry = PendingApprovalRegistry(ApprovalKind.TOOL)
        >>> future = registry.register("a1", ApprovalContext("C1"))  # inside a running loop
        >>> registry.resolve("a1", {"allow": True})
        True
        >>> registry.resolve("a1", {"allow": True})
        False
    """

    def __init__(
        self: "PendingApprovalRegistry",
        kind: ApprovalKind,
        on_resolved: CleanupHook | None = None,
    ) -> None:
        self.kind = kind
        self.on_resolved = on_resolved
        self._pending: dict[str, PendingApproval] = {}
        self._cleanup_tasks: set[asyncio.Task] = set()

    def __contains__(self: "PendingApprovalRegistry", approval_id: object) -> bool:
        return approval_id in self._pending

    def __len__(self: "PendingApprovalRegistry") -> int:
        return len(self._pending)

    def get(self: "PendingApprovalRegistry", approval_id: str) -> PendingApproval | None:
        return self._pending.get(approval_id)

    def list_pending(self: "PendingApprovalRegistry", conversation_key: str | None = None) -> list[PendingApproval]:
        return [
            entry
            for entry in self._pending.values()
            if conversation_key is None or entry.context.conversation_key == conversation_key
        ]

    def register(
        self: "PendingApprovalRegistry",
        approval_id: str,
        context: ApprovalContext,
        payload: dict[str, Any] | None = None,
    ) -> asyncio.Future:
        """Store a new pending approval and return the future to await.

        Must be called from a running event loop.

        Raises:
            DuplicateApprovalError: If ``approval_id`` is still pending
        """
        if approval_id in self._pending:
            raise DuplicateApprovalError(approval_id)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[approval_id] = PendingApproval(
            id=approval_id,
            kind=self.kind,
            future=future,
            context=context,
            payload=payload or {},
        )
        logger.info(f"Registered {self.kind.value} approval {approval_id} for {context.conversation_key}")
        return future

    def resolve(self: "PendingApprovalRegistry", approval_id: str, value: Any) -> bool:
        """Complete the approval with ``value`` and remove it.

        Returns:
            True if resolved, False if the id was not pending (already
            answered, aborted or expired)
        """
        entry = self._pending.pop(approval_id, None)
        if entry is None:
            logger.warning(f"{self.kind.value} approval {approval_id} not pending, ignoring resolution")
            return False

        if not entry.future.done():
            entry.future.set_result(value)
        logger.info(f"Resolved {self.kind.value} approval {approval_id}")
        self._run_cleanup(entry, value)
        return True

    def abort(self: "PendingApprovalRegistry", approval_id: str) -> bool:
        return self.resolve(approval_id, ApprovalSignal.ABORTED)

    def abort_conversation(self: "PendingApprovalRegistry", conversation_key: str) -> int:
        """Abort every approval pending for a conversation. Returns the count."""
        ids = [entry.id for entry in self.list_pending(conversation_key)]
        for approval_id in ids:
            self.abort(approval_id)
        return len(ids)

    async def wait(self: "PendingApprovalRegistry", approval_id: str, timeout: float | None = None) -> Any:
        """Await an approval, resolving it with EXPIRED after ``timeout`` seconds.

        Raises:
            KeyError: If ``approval_id`` is not pending
        """
        entry = self._pending.get(approval_id)
        if entry is None:
            raise KeyError(approval_id)
        try:
            return await asyncio.wait_for(asyncio.shield(entry.future), timeout=timeout)
        except TimeoutError:
            logger.info(f"{self.kind.value} approval {approval_id} expired after {timeout}s")
            self.resolve(approval_id, ApprovalSignal.EXPIRED)
            return await entry.future

    def clear(self: "PendingApprovalRegistry") -> None:
        """Abort everything pending. Used on shutdown and in tests."""
        for approval_id in list(self._pending):
            self.abort(approval_id)

    def _run_cleanup(self: "PendingApprovalRegistry", entry: PendingApproval, value: Any) -> None:
        if self.on_resolved is None or entry.context.message_ts is None:
            return
        try:
            outcome = self.on_resolved(entry, value)
        except Exception as e:
            logger.warning(f"Cleanup for approval {entry.id} failed: {e}")
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._cleanup_tasks.add(task)
            task.add_done_callback(self._cleanup_done)

    def _cleanup_done(self: "PendingApprovalRegistry", task: asyncio.Task) -> None:
        self._cleanup_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Approval cleanup failed: {task.exception()}")


class ApprovalRegistries:
    """The three independent approval tables of one process."""

    def __init__(self: "ApprovalRegistries", on_resolved: CleanupHook | None = None) -> None:
        self.tools = PendingApprovalRegistry(ApprovalKind.TOOL, on_resolved)
        self.plans = PendingApprovalRegistry(ApprovalKind.PLAN, on_resolved)
        self.questions = PendingApprovalRegistry(ApprovalKind.QUESTION, on_resolved)

    def for_kind(self: "ApprovalRegistries", kind: ApprovalKind) -> PendingApprovalRegistry:
        return {
            ApprovalKind.TOOL: self.tools,
            ApprovalKind.PLAN: self.plans,
            ApprovalKind.QUESTION: self.questions,
        }[kind]

    def all(self: "ApprovalRegistries") -> list[PendingApprovalRegistry]:
        return [self.tools, self.plans, self.questions]

    def abort_conversation(self: "ApprovalRegistries", conversation_key: str) -> int:
        return sum(registry.abort_conversation(conversation_key) for registry in self.all())

    def clear(self: "ApprovalRegistries") -> None:
        for registry in self.all():
            registry.clear()
