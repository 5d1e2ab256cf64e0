"""Record classification for session logs.

Keeps conversational records and answers questions about them: is this a
genuine user turn starter, a tool-result echo, a plan file write?

Contract:
- Inputs: Raw record dictionaries from the log reader
- Outputs: Typed LogRecord values and classifications
- Side Effects: None
"""

import logging
from typing import Any

from pydantic import ValidationError

from ..models import ContentBlock
from ..models import LogRecord

logger = logging.getLogger(__name__)

KEPT_KINDS = frozenset({"user", "assistant"})
DEFAULT_PLANS_MARKER = ".claude/plans/"


def parse_record(raw: dict[str, Any]) -> LogRecord | None:
    """Parse a raw record if it is conversational, else None.

    Only ``user`` and ``assistant`` records with non-empty content are
    kept; progress pings, queue operations and summaries are dropped.
    """
    if raw.get("type") not in KEPT_KINDS:
        return None
    try:
        record = LogRecord.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Skipping unparseable {raw.get('type')} record: {e.error_count()} errors")
        return None
    if not record.has_content:
        return None
    return record


def filter_records(raws: list[dict[str, Any]]) -> list[LogRecord]:
    records = []
    for raw in raws:
        record = parse_record(raw)
        if record is not None:
            records.append(record)
    return records


def is_user_text_turn_starter(record: LogRecord) -> bool:
    """True when a user record carries real user text.

    A user record whose content is only tool results is the mechanical echo
    of a tool's output and does not start a turn.
    """
    if record.kind != "user":
        return False
    return any(block.type == "text" and block.text for block in record.content_blocks)


def is_tool_result_record(record: LogRecord) -> bool:
    return record.kind == "user" and any(block.type == "tool_result" for block in record.content_blocks)


def find_last_user_message(records: list[LogRecord]) -> LogRecord | None:
    """Most recent genuine user text record, skipping tool-result echoes."""
    for record in reversed(records):
        if is_user_text_turn_starter(record):
            return record
    return None


def find_record_index(records: list[LogRecord], uuid: str) -> int:
    """Index of the record with ``uuid``, or -1."""
    for index, record in enumerate(records):
        if record.uuid == uuid:
            return index
    return -1


def extract_text_content(record: LogRecord) -> str:
    """Render a record's content as plain text.

    Text blocks are joined by newlines and tool uses become ``[Tool: name]``.
    Thinking and tool results are omitted.
    """
    parts = []
    for block in record.content_blocks:
        if block.type == "text" and block.text:
            parts.append(block.text)
        elif block.type == "tool_use" and block.name:
            parts.append(f"[Tool: {block.name}]")
    return "\n".join(parts)


def is_plan_file_path(path: Any, marker: str = DEFAULT_PLANS_MARKER) -> bool:
    return isinstance(path, str) and marker in path and path.endswith(".md")


def _block_plan_path(block: ContentBlock, marker: str) -> str | None:
    if block.type != "tool_use" or not block.input:
        return None
    for key in ("file_path", "path"):
        candidate = block.input.get(key)
        if is_plan_file_path(candidate, marker):
            return candidate
    return None


def tool_use_result_plan(result: Any, marker: str = DEFAULT_PLANS_MARKER) -> tuple[str, str | None] | None:
    """(path, content) from a side-channel tool result when it names a plan file."""
    if not isinstance(result, dict):
        return None
    file_info = result.get("file")
    if isinstance(file_info, dict) and is_plan_file_path(file_info.get("filePath"), marker):
        return file_info["filePath"], file_info.get("content")
    if is_plan_file_path(result.get("filePath"), marker):
        return result["filePath"], result.get("content")
    return None


def extract_plan_file_path(record: LogRecord, marker: str = DEFAULT_PLANS_MARKER) -> str | None:
    """Plan file path referenced by a record's tool inputs or tool result."""
    for block in record.content_blocks:
        path = _block_plan_path(block, marker)
        if path:
            return path
    side_channel = tool_use_result_plan(record.tool_use_result, marker)
    if side_channel:
        return side_channel[0]
    return None


def extract_plan_content(record: LogRecord, marker: str = DEFAULT_PLANS_MARKER) -> str | None:
    """Content of the plan document a record writes or reads, if any.

    Write inputs carry the content directly; reads and creates surface it
    through ``toolUseResult``.
    """
    for block in record.content_blocks:
        if _block_plan_path(block, marker) and block.input:
            content = block.input.get("content")
            if isinstance(content, str) and content:
                return content
    side_channel = tool_use_result_plan(record.tool_use_result, marker)
    if side_channel and side_channel[1]:
        return side_channel[1]
    return None


def displayable_text(record: LogRecord, marker: str = DEFAULT_PLANS_MARKER) -> str:
    """Text to display for a record, substituting plan content for placeholders."""
    plan_content = extract_plan_content(record, marker)
    if plan_content:
        return plan_content
    return extract_text_content(record)
