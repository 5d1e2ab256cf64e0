"""Read-only session log endpoints.

Sessions are addressed by id plus the working directory the agent ran in,
which together locate the JSONL log under the projects directory.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated
from typing import Any

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from sse_starlette.event import ServerSentEvent
from sse_starlette.sse import EventSourceResponse

from relay_library.activity import ActivityEntryBuilder
from relay_library.activity import build_activity_log_text
from relay_library.errors import SessionFileMissingError
from relay_library.sessions import filter_records
from relay_library.sessions import find_last_user_message
from relay_library.sessions import get_file_size
from relay_library.sessions import get_session_file_path
from relay_library.sessions import group_turns
from relay_library.sessions import read_new_lines
from relay_library.sessions import watch_session_records

from ..dependencies import get_relay_state
from ..errors import to_http_exception
from ..models import SessionActivityResponse
from ..state import RelayState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])

WorkingDir = Annotated[str, Query(alias="workingDir", description="Working directory the session ran in")]


def _existing_session_path(state: RelayState, session_id: str, working_dir: str) -> Path:
    path = get_session_file_path(session_id, working_dir, state.settings.projects_dir)
    if not path.is_file():
        raise to_http_exception(SessionFileMissingError(session_id, str(path)))
    return path


@router.get("/{session_id}/turns")
async def get_turns(
    session_id: str,
    working_dir: WorkingDir,
    state: Annotated[RelayState, Depends(get_relay_state)],
    since: Annotated[int, Query(ge=0, description="Byte offset to read from")] = 0,
) -> dict[str, Any]:
    """Turns appended since a byte offset, with the offset to resume from.

    Raises:
        HTTPException: 404 if the session log does not exist
    """
    path = _existing_session_path(state, session_id, working_dir)
    try:
        tail = read_new_lines(path, since)
        turns = group_turns(filter_records(tail.records), state.settings.plans_dir_marker)
    except OSError as exc:
        logger.error(f"Failed to read turns of session {session_id}: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to read session log: {exc}") from exc
    return {
        "sessionId": session_id,
        "offset": tail.new_offset,
        "turns": [turn.model_dump(mode="json", by_alias=True) for turn in turns],
    }


@router.get("/{session_id}/activity")
async def get_activity(
    session_id: str,
    working_dir: WorkingDir,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> SessionActivityResponse:
    """Activity entries rebuilt from the whole session log."""
    path = _existing_session_path(state, session_id, working_dir)
    builder = ActivityEntryBuilder.from_settings(state.settings)
    try:
        builder.add_records(filter_records(read_new_lines(path).records))
    except OSError as exc:
        logger.error(f"Failed to read activity of session {session_id}: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to read session log: {exc}") from exc
    return SessionActivityResponse(
        session_id=session_id,
        text=build_activity_log_text(builder.log),
        entries=[entry.model_dump(mode="json", by_alias=True) for entry in builder.log.entries],
        results={key: result.model_dump(mode="json", by_alias=True) for key, result in builder.log.results.items()},
        plan_file_path=builder.plan_file_path,
    )


@router.get("/{session_id}/last-user-message")
async def get_last_user_message(
    session_id: str,
    working_dir: WorkingDir,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> dict[str, Any]:
    """Most recent user text message, or null when the log has none."""
    path = _existing_session_path(state, session_id, working_dir)
    record = find_last_user_message(filter_records(read_new_lines(path).records))
    return {
        "sessionId": session_id,
        "message": record.model_dump(mode="json", by_alias=True) if record else None,
    }


@router.get("/{session_id}/live")
async def stream_live_activity(
    session_id: str,
    working_dir: WorkingDir,
    state: Annotated[RelayState, Depends(get_relay_state)],
    from_start: Annotated[bool, Query(alias="fromStart")] = False,
) -> EventSourceResponse:
    """SSE stream of activity built from a session log as it grows.

    Events:
        - activity: Rendered text and live entries after each new batch
    """
    path = _existing_session_path(state, session_id, working_dir)
    offset = 0 if from_start else get_file_size(path)

    async def event_generator():
        builder = ActivityEntryBuilder.from_settings(state.settings)
        try:
            async for batch in watch_session_records(path, offset, poll_interval=state.settings.watch_poll_interval_seconds):
                builder.add_records(batch.records)
                yield ServerSentEvent(
                    data=json.dumps(
                        {
                            "offset": batch.offset,
                            "text": build_activity_log_text(builder.log),
                            "entries": [entry.model_dump(mode="json", by_alias=True) for entry in builder.log.live_view()],
                        }
                    ),
                    event="activity",
                )
        except asyncio.CancelledError:
            logger.info(f"Live activity stream closed for session {session_id}")

    return EventSourceResponse(event_generator(), ping=30)
