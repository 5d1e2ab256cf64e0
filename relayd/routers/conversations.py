"""Conversation endpoints: status, fast-forward, watch, queries and aborts."""

import asyncio
import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sse_starlette.event import ServerSentEvent
from sse_starlette.sse import EventSourceResponse

from relay_library.activity.render import build_activity_log_text
from relay_library.concurrency import check_watch_compatible
from relay_library.errors import ConversationBusyError
from relay_library.errors import RelayError
from relay_library.errors import SessionFileMissingError
from relay_library.sessions.reader import get_file_size
from relay_library.sessions.reader import get_session_file_path
from relay_library.sync import WatchState
from relay_library.sync import prepare_fast_forward
from relay_library.sync import run_fast_forward

from ..dependencies import get_relay_state
from ..dependencies import get_watch_scheduler
from ..errors import to_http_exception
from ..models import AbortResponse
from ..models import CommandCheckRequest
from ..models import CommandCheckResponse
from ..models import ConversationStatus
from ..models import FastForwardRequest
from ..models import FastForwardResponse
from ..models import QueryRequest
from ..models import QueryResponse
from ..models import WatchRateRequest
from ..models import WatchRequest
from ..models import WatchStatus
from ..services.watch_scheduler import WatchScheduler
from ..state import RelayState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


def _session_path(state: RelayState, session_id: str, working_dir: str) -> Path:
    return get_session_file_path(session_id, working_dir, state.settings.projects_dir)


def _watch_status(watch: WatchState) -> WatchStatus:
    return WatchStatus(
        session_id=watch.session_id,
        session_path=str(watch.session_path),
        offset=watch.offset,
        update_rate_seconds=watch.update_rate_seconds,
        started_at=watch.started_at,
    )


@router.get("/{conversation_key}/status")
async def get_status(
    conversation_key: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> ConversationStatus:
    """Busy, watch and pending-approval state of a conversation."""
    watch = state.watches.get(conversation_key)
    pending = sum(len(registry.list_pending(conversation_key)) for registry in state.approvals.all())
    return ConversationStatus(
        conversation_key=conversation_key,
        busy=state.gate.is_busy(conversation_key),
        watching=watch is not None,
        watch=_watch_status(watch) if watch else None,
        pending_approvals=pending,
        last_sync_offset=state.sync_offsets.get(conversation_key),
    )


@router.post("/{conversation_key}/commands/check")
async def check_command(
    conversation_key: str,
    request: CommandCheckRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> CommandCheckResponse:
    """Whether a command may run now, with the message to show when it may not."""
    try:
        check_watch_compatible(conversation_key, request.command, state.watches.is_watching(conversation_key))
    except RelayError as e:
        return CommandCheckResponse(allowed=False, message=str(e))
    if state.gate.is_busy(conversation_key):
        return CommandCheckResponse(allowed=False, message=str(ConversationBusyError(conversation_key)))
    return CommandCheckResponse(allowed=True)


@router.post("/{conversation_key}/fast-forward", status_code=status.HTTP_202_ACCEPTED)
async def start_fast_forward(
    conversation_key: str,
    request: FastForwardRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> FastForwardResponse:
    """Replay a session's turns into the conversation in the background.

    Raises:
        HTTPException:
            - 404 if the session log does not exist
            - 409 if the conversation is busy or being watched
    """
    session_path = _session_path(state, request.session_id, request.working_dir)
    since_offset = 0 if request.from_start else state.sync_offsets.get(conversation_key, 0)

    try:
        check_watch_compatible(conversation_key, "ff", state.watches.is_watching(conversation_key))
        prepare_fast_forward(conversation_key, request.session_id, session_path, state.gate, state.sync_aborts)
    except RelayError as e:
        raise to_http_exception(e) from e

    async def replay() -> None:
        settings = state.settings
        try:
            result = await run_fast_forward(
                conversation_key,
                session_path,
                state.gate,
                state.publish_turn,
                state.posted,
                state.sync_aborts,
                since_offset,
                pacing_delay_ms=settings.sync_pacing_delay_ms,
                max_attempts=settings.sync_max_attempts,
                on_progress=state.publish_progress,
                plans_marker=settings.plans_dir_marker,
            )
        finally:
            state.active_syncs.discard(conversation_key)
        if result.all_succeeded and not result.was_aborted:
            state.sync_offsets[conversation_key] = result.new_offset
        await state.hub.emit(
            conversation_key,
            "sync:done",
            {
                "synced": result.synced_count,
                "total": result.total_to_sync,
                "aborted": result.was_aborted,
                "allSucceeded": result.all_succeeded,
                "offset": result.new_offset,
            },
        )

    state.active_syncs.add(conversation_key)
    state.spawn(replay(), name=f"ff:{conversation_key}")
    logger.info(f"Fast-forward of {request.session_id} into {conversation_key} started from offset {since_offset}")
    return FastForwardResponse(
        conversation_key=conversation_key,
        session_id=request.session_id,
        since_offset=since_offset,
    )


@router.post("/{conversation_key}/fast-forward/stop")
async def stop_fast_forward(
    conversation_key: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> AbortResponse:
    """Ask a running fast-forward to stop after the current turn.

    Only a fast-forward in flight is flagged; a running query is left alone.
    """
    if conversation_key not in state.active_syncs:
        return AbortResponse(sync_aborting=False)
    state.sync_aborts.mark(conversation_key)
    return AbortResponse(sync_aborting=True)


@router.post("/{conversation_key}/watch", status_code=status.HTTP_201_CREATED)
async def start_watch(
    conversation_key: str,
    request: WatchRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
    scheduler: Annotated[WatchScheduler, Depends(get_watch_scheduler)],
) -> WatchStatus:
    """Follow a live session log, publishing new turns as they appear.

    Raises:
        HTTPException:
            - 404 if the session log does not exist
            - 409 if the conversation is busy or already watching
    """
    session_path = _session_path(state, request.session_id, request.working_dir)
    try:
        if not session_path.is_file():
            raise SessionFileMissingError(request.session_id, str(session_path))
        if state.gate.is_busy(conversation_key):
            raise ConversationBusyError(conversation_key)
        watch = state.watches.start(
            conversation_key,
            request.session_id,
            session_path,
            offset=get_file_size(session_path),
            update_rate_seconds=request.update_rate_seconds or state.settings.watch_poll_interval_seconds,
            aborts=state.sync_aborts,
        )
    except RelayError as e:
        raise to_http_exception(e) from e

    scheduler.add_watch(watch)
    return _watch_status(watch)


@router.patch("/{conversation_key}/watch")
async def set_watch_rate(
    conversation_key: str,
    request: WatchRateRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
    scheduler: Annotated[WatchScheduler, Depends(get_watch_scheduler)],
) -> WatchStatus:
    """Change how often a watched session log is polled.

    Raises:
        HTTPException: 404 if the conversation is not being watched
    """
    if not state.watches.set_rate(conversation_key, request.update_rate_seconds):
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_key} is not watching")

    watch = state.watches.get(conversation_key)
    scheduler.add_watch(watch)
    return _watch_status(watch)


@router.delete("/{conversation_key}/watch", status_code=status.HTTP_204_NO_CONTENT)
async def stop_watch(
    conversation_key: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
    scheduler: Annotated[WatchScheduler, Depends(get_watch_scheduler)],
) -> None:
    """Stop watching. Idempotent."""
    state.watches.stop(conversation_key)
    scheduler.remove_watch(conversation_key)


@router.post("/{conversation_key}/queries")
async def run_query(
    conversation_key: str,
    request: QueryRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> QueryResponse:
    """Run an agent event stream through the conversation runner.

    Activity snapshots are published to the conversation stream as the
    events are consumed. An ``exitError`` ends the stream the way the agent
    process failing would.

    Raises:
        HTTPException:
            - 409 if the conversation is busy or being watched
            - 502 in strict mode if the stream failed outright
    """

    async def events():
        for event in request.events:
            yield event
            # Let abort requests and subscribers run between events
            await asyncio.sleep(0)
        if request.exit_error is not None:
            raise RuntimeError(request.exit_error)

    try:
        outcome = await state.runner.run(
            conversation_key,
            events(),
            on_update=state.publish_activity,
            command=request.command,
            strict=request.strict,
        )
    except RelayError as e:
        raise to_http_exception(e) from e

    return QueryResponse(
        status=outcome.status.value,
        result_text=outcome.result_text,
        error_message=outcome.error_message,
        session_id=outcome.session_id,
        model=outcome.model,
        duration_ms=outcome.duration_ms,
        plan_file_path=outcome.plan_file_path,
        activity_text=build_activity_log_text(outcome.activity, in_progress=False),
        entries=[entry.model_dump(mode="json", by_alias=True) for entry in outcome.activity.entries],
    )


@router.post("/{conversation_key}/abort")
async def abort_conversation(
    conversation_key: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> AbortResponse:
    """Abort the running query, or stop a running fast-forward."""
    query_aborted = await state.runner.abort(conversation_key)
    sync_aborting = False
    if not query_aborted and conversation_key in state.active_syncs:
        state.sync_aborts.mark(conversation_key)
        sync_aborting = True
    return AbortResponse(query_aborted=query_aborted, sync_aborting=sync_aborting)


@router.get("/{conversation_key}/stream")
async def stream_conversation_events(
    conversation_key: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> EventSourceResponse:
    """Persistent SSE stream of a conversation's events.

    Events:
        - connected: Initial connection established
        - keepalive: Periodic heartbeat (every 30s)
        - turn: A replayed turn
        - activity: Live activity snapshot of a running query
        - sync:progress / sync:done: Fast-forward progress
        - approval:resolved: An approval was answered, aborted or expired
    """

    async def event_generator():
        queue = state.hub.subscribe(conversation_key)
        try:
            yield ServerSentEvent(
                data=json.dumps(
                    {
                        "conversationKey": conversation_key,
                        "timestamp": datetime.now(UTC).isoformat(),
                    }
                ),
                event="connected",
            )
            logger.info(f"SSE stream connected for conversation {conversation_key}")

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield ServerSentEvent(data=json.dumps(event["data"]), event=event["event"])
                except TimeoutError:
                    yield ServerSentEvent(
                        data=json.dumps({"timestamp": datetime.now(UTC).isoformat()}),
                        event="keepalive",
                    )
        except asyncio.CancelledError:
            logger.info(f"SSE stream disconnected for conversation {conversation_key}")
        finally:
            state.hub.unsubscribe(conversation_key, queue)

    return EventSourceResponse(event_generator())
