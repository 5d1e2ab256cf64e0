"""Async tailing of a session log that is still being written."""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from ..models import LogRecord
from .reader import read_new_lines
from .records import filter_records

logger = logging.getLogger(__name__)


@dataclass
class RecordBatch:
    records: list[LogRecord]
    offset: int


async def watch_session_records(
    path: Path,
    from_offset: int = 0,
    poll_interval: float = 0.5,
    stop_event: asyncio.Event | None = None,
) -> AsyncIterator[RecordBatch]:
    """Yield newly appended conversational records until stopped.

    Args:
        path: Session log path (may not exist yet)
        from_offset: Byte offset to start from
        poll_interval: Seconds between polls
        stop_event: Ends the generator when set

    Yields:
        Non-empty batches of kept records with the offset after each batch
    """
    offset = from_offset
    logger.info(f"Watching session log {path} from offset {offset}")
    while stop_event is None or not stop_event.is_set():
        result = read_new_lines(path, offset)
        offset = result.new_offset
        records = filter_records(result.records)
        if records:
            yield RecordBatch(records=records, offset=offset)

        if stop_event is None:
            await asyncio.sleep(poll_interval)
            continue
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
        except TimeoutError:
            pass
    logger.info(f"Stopped watching session log {path} at offset {offset}")
