"""Incremental reader for the agent's append-only session log.

The log is written by another process one JSON object per line. Readers
keep a byte offset between calls and only ever consume whole lines, so a
record is never returned twice and a partial write is never parsed.

Contract:
- Inputs: Session log path and a byte offset owned by the caller
- Outputs: Raw record dictionaries and the advanced offset
- Side Effects: None (read-only, never locks the file)
"""

import json
import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from ..storage.paths import project_dir_name

logger = logging.getLogger(__name__)


@dataclass
class TailResult:
    """Records read by one call plus the offset to resume from."""

    records: list[dict[str, Any]] = field(default_factory=list)
    new_offset: int = 0


def get_file_size(path: Path) -> int:
    """Size of the session log in bytes, or 0 when it does not exist."""
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return 0


def get_session_file_path(session_id: str, working_dir: str, projects_dir: str | Path) -> Path:
    """Locate the session log for a session started in ``working_dir``.

    The agent stores logs under a per-project directory named after the
    working directory with every ``/`` replaced by ``-``.

    Example:
        >>> get_session_file_path("abc", "/home/me/app", "/p")
        PosixPath('/p/-home-me-app/abc.jsonl')
    """
    return Path(projects_dir) / project_dir_name(working_dir) / f"{session_id}.jsonl"


def session_file_exists(session_id: str, working_dir: str, projects_dir: str | Path) -> bool:
    return get_session_file_path(session_id, working_dir, projects_dir).is_file()


def parse_jsonl_lines(data: bytes) -> list[dict[str, Any]]:
    """Parse complete JSONL bytes, skipping blank and malformed lines.

    Malformed lines are expected: the log is written by an external process.
    """
    records: list[dict[str, Any]] = []
    for raw_line in data.split(b"\n"):
        if not raw_line.strip():
            continue
        try:
            parsed = json.loads(raw_line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Skipping malformed session log line: {e}")
            continue
        if not isinstance(parsed, dict):
            logger.debug("Skipping non-object session log line")
            continue
        records.append(parsed)
    return records


def read_new_lines(path: Path, since_offset: int = 0) -> TailResult:
    """Read complete records appended since ``since_offset``.

    Args:
        path: Session log path
        since_offset: Byte offset returned by the previous call (0 for start)

    Returns:
        Parsed records and the offset just past the last complete line. When
        the file is missing or has not grown, no records and the same offset.

    Example:
        >>> result = read_new_lines(Path("missing.jsonl"), 42)
        >>> assert result.records == [] and result.new_offset == 42
    """
    size = get_file_size(path)
    if size <= since_offset:
        return TailResult(records=[], new_offset=since_offset)

    try:
        with open(path, "rb") as f:
            f.seek(since_offset)
            data = f.read(size - since_offset)
    except FileNotFoundError:
        return TailResult(records=[], new_offset=since_offset)

    # Anything after the last newline may be a write still in progress
    last_newline = data.rfind(b"\n")
    if last_newline == -1:
        return TailResult(records=[], new_offset=since_offset)

    complete = data[: last_newline + 1]
    return TailResult(records=parse_jsonl_lines(complete), new_offset=since_offset + len(complete))


def read_session_records(path: Path) -> list[dict[str, Any]]:
    """Read every complete record currently in the log."""
    return read_new_lines(path, 0).records


class SessionLogTailer:
    """Holds the offset for repeated reads of one session log.

    Example:
        >>> tailer = SessionLogTailer(Path("session.jsonl"))
        >>> records = tailer.read_new()
    """

    def __init__(self: "SessionLogTailer", path: Path, offset: int = 0) -> None:
        self.path = path
        self.offset = offset

    def read_new(self: "SessionLogTailer") -> list[dict[str, Any]]:
        result = read_new_lines(self.path, self.offset)
        if result.new_offset != self.offset:
            logger.debug(f"Tailed {len(result.records)} records from {self.path} ({self.offset} -> {result.new_offset})")
        self.offset = result.new_offset
        return result.records
