"""Runs one agent query for a conversation.

Handles admission (watch check, concurrency gate), live activity building
from the agent's event stream, and classification of a stream that ends in
an error.

Contract:
- Inputs: Conversation key, an async iterator of raw agent events
- Outputs: QueryOutcome with status, final text and the activity log
- Side Effects: Holds the conversation gate for the query's lifetime,
  calls the on_update callback as activity changes
"""

import inspect
import logging
from collections.abc import AsyncIterator
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..activity.builder import ActivityEntryBuilder
from ..activity.log import ActivityLog
from ..concurrency.abort import QueryAbortTracker
from ..concurrency.approvals import ApprovalRegistries
from ..concurrency.gate import ConversationConcurrencyGate
from ..concurrency.gate import check_watch_compatible
from ..config.settings import RelaySettings
from ..errors import AgentStreamError
from ..errors import ConversationBusyError
from ..errors import StreamFailureKind
from ..errors import classify_stream_error
from ..models.events import parse_agent_event

logger = logging.getLogger(__name__)

ActivityCallback = Callable[[str, ActivityEntryBuilder], Awaitable[None] | None]
InterruptCallable = Callable[[], Awaitable[None] | None]


class QueryStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"
    PLAN_EXIT = "plan_exit"
    FAILED = "failed"


@dataclass
class QueryOutcome:
    status: QueryStatus
    activity: ActivityLog
    result_text: str | None = None
    error_message: str | None = None
    session_id: str | None = None
    model: str | None = None
    usage: dict[str, Any] | None = None
    duration_ms: int | None = None
    plan_file_path: str | None = None


async def _maybe_await(value: Awaitable[None] | None) -> None:
    if inspect.isawaitable(value):
        await value


class ConversationRunner:
    """Runs agent queries with per-conversation exclusion.

    The gate, abort tracker and approval registries are injected so one
    set is shared by every entry point of the process.

    Example:
        >>> runner = ConversationRunner(gate, aborts, registries)
        >>> outcome = await runner.run("C123", agent_events)
        >>> outcome.status
        <QueryStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self: "ConversationRunner",
        gate: ConversationConcurrencyGate,
        aborts: QueryAbortTracker,
        approvals: ApprovalRegistries,
        settings: RelaySettings | None = None,
        is_watching: Callable[[str], bool] | None = None,
    ) -> None:
        self.gate = gate
        self.aborts = aborts
        self.approvals = approvals
        self.settings = settings or RelaySettings()
        self.is_watching = is_watching or (lambda key: False)
        self._interrupts: dict[str, InterruptCallable] = {}
        self._running: set[str] = set()

    async def run(
        self: "ConversationRunner",
        conversation_key: str,
        events: AsyncIterator[dict[str, Any]],
        on_update: ActivityCallback | None = None,
        interrupt: InterruptCallable | None = None,
        command: str = "query",
        strict: bool = False,
    ) -> QueryOutcome:
        """Consume an agent event stream for one query.

        Args:
            conversation_key: Conversation the query belongs to
            events: Raw agent events
            on_update: Called with the builder whenever visible activity changes
            interrupt: Stops the agent process; invoked by ``abort``
            command: Command name, checked against the watch allow-list
            strict: Raise genuine stream failures instead of returning them

        Returns:
            Outcome of the query. Stream errors are classified, not raised,
            unless ``strict`` is set.

        Raises:
            AgentStreamError: In strict mode, if the stream failed outright
            WatchConflictError: If the conversation is being watched
            ConversationBusyError: If a query is already running
        """
        check_watch_compatible(conversation_key, command, self.is_watching(conversation_key))
        builder = ActivityEntryBuilder.from_settings(self.settings)
        if not self.gate.try_acquire(conversation_key):
            raise ConversationBusyError(conversation_key)

        self._running.add(conversation_key)
        if interrupt is not None:
            self._interrupts[conversation_key] = interrupt

        try:
            builder.start()
            await self._notify(on_update, conversation_key, builder)

            try:
                async for raw in events:
                    event = parse_agent_event(raw)
                    if event is None:
                        continue
                    if builder.handle_event(event):
                        await self._notify(on_update, conversation_key, builder)
            except Exception as e:
                outcome = await self._handle_stream_error(e, conversation_key, builder, on_update)
                if strict and outcome.status == QueryStatus.FAILED:
                    raise AgentStreamError(outcome.error_message or "Agent stream failed") from e
                return outcome

            if self.aborts.is_set(conversation_key):
                builder.mark_aborted()
                await self._notify(on_update, conversation_key, builder)
                return self._outcome(QueryStatus.ABORTED, builder)

            logger.info(f"Query for {conversation_key} completed")
            return self._outcome(QueryStatus.COMPLETED, builder)
        finally:
            self._interrupts.pop(conversation_key, None)
            self._running.discard(conversation_key)
            self.aborts.clear(conversation_key)
            self.gate.release(conversation_key)

    async def _handle_stream_error(
        self: "ConversationRunner",
        error: Exception,
        conversation_key: str,
        builder: ActivityEntryBuilder,
        on_update: ActivityCallback | None,
    ) -> QueryOutcome:
        failure = classify_stream_error(
            error,
            builder.last_completed_tool,
            aborted=self.aborts.is_set(conversation_key),
        )
        if failure.kind == StreamFailureKind.ABORTED:
            logger.info(f"Query for {conversation_key} aborted by user")
            builder.mark_aborted()
            status = QueryStatus.ABORTED
        elif failure.kind == StreamFailureKind.PLAN_MODE_EXIT:
            logger.info(f"Query for {conversation_key} ended after plan mode exit")
            status = QueryStatus.PLAN_EXIT
        else:
            logger.error(f"Query for {conversation_key} failed: {failure.message}")
            builder.mark_error(failure.message)
            status = QueryStatus.FAILED

        await self._notify(on_update, conversation_key, builder)
        error_message = failure.message if status == QueryStatus.FAILED else None
        return self._outcome(status, builder, error_message)

    def _outcome(
        self: "ConversationRunner",
        status: QueryStatus,
        builder: ActivityEntryBuilder,
        error_message: str | None = None,
    ) -> QueryOutcome:
        return QueryOutcome(
            status=status,
            activity=builder.log,
            result_text=builder.final_result,
            error_message=error_message,
            session_id=builder.session_id,
            model=builder.model,
            usage=builder.usage,
            duration_ms=builder.duration_ms,
            plan_file_path=builder.plan_file_path,
        )

    async def _notify(
        self: "ConversationRunner",
        on_update: ActivityCallback | None,
        conversation_key: str,
        builder: ActivityEntryBuilder,
    ) -> None:
        if on_update is None:
            return
        try:
            await _maybe_await(on_update(conversation_key, builder))
        except Exception as e:
            # Display failures must not end the query
            logger.warning(f"Activity update for {conversation_key} failed: {e}")

    def is_running(self: "ConversationRunner", conversation_key: str) -> bool:
        return conversation_key in self._running

    async def abort(self: "ConversationRunner", conversation_key: str) -> bool:
        """Interrupt the running query of a conversation.

        The abort flag is set before the interrupt so the resulting stream
        error is classified as an abort. Pending approvals of the
        conversation are resolved with the abort signal.

        Returns:
            True if a query was running
        """
        if conversation_key not in self._running:
            return False

        self.aborts.mark(conversation_key)
        aborted_approvals = self.approvals.abort_conversation(conversation_key)
        if aborted_approvals:
            logger.info(f"Aborted {aborted_approvals} pending approvals for {conversation_key}")

        interrupt = self._interrupts.get(conversation_key)
        if interrupt is not None:
            try:
                await _maybe_await(interrupt())
            except Exception as e:
                logger.warning(f"Interrupt for {conversation_key} failed: {e}")
        return True
