"""Group session log records into turns.

A turn opens at each genuine user text record. Inside a turn, records are
split into segments at every assistant text output; activity after the last
text output is the turn's trailing activity.

Contract:
- Inputs: Filtered LogRecord values in log order
- Outputs: Turn values partitioning those records
- Side Effects: None
"""

import logging
from dataclasses import dataclass
from dataclasses import field

from ..models import LogRecord
from ..models import Segment
from ..models import Turn
from .records import DEFAULT_PLANS_MARKER
from .records import extract_plan_file_path
from .records import is_user_text_turn_starter

logger = logging.getLogger(__name__)


def is_text_output(record: LogRecord) -> bool:
    """True for an assistant record that produced visible text."""
    return record.kind == "assistant" and any(
        block.type == "text" and block.text and block.text.strip() for block in record.content_blocks
    )


@dataclass
class _TurnBuilder:
    user_input: LogRecord | None
    segments: list[Segment] = field(default_factory=list)
    pending: list[LogRecord] = field(default_factory=list)
    uuids: list[str] = field(default_factory=list)
    plan_file_path: str | None = None

    def add(self: "_TurnBuilder", record: LogRecord) -> None:
        if is_text_output(record):
            self.segments.append(Segment(activity_messages=self.pending, text_output=record))
            self.pending = []
        else:
            self.pending.append(record)

    def build(self: "_TurnBuilder") -> Turn:
        return Turn(
            user_input=self.user_input,
            segments=self.segments,
            trailing_activity=self.pending,
            all_message_uuids=self.uuids,
            plan_file_path=self.plan_file_path,
        )


def group_turns(records: list[LogRecord], plans_marker: str = DEFAULT_PLANS_MARKER) -> list[Turn]:
    """Group records into turns.

    Records before the first user text record form a turn without user
    input, so every kept uuid lands in exactly one turn. A uuid seen twice
    is only consumed the first time.

    Args:
        records: Filtered records in log order
        plans_marker: Path fragment identifying plan documents

    Returns:
        Turns in log order
    """
    turns: list[Turn] = []
    current: _TurnBuilder | None = None
    seen: set[str] = set()

    for record in records:
        if record.uuid in seen:
            logger.debug(f"Skipping duplicate record {record.uuid}")
            continue
        seen.add(record.uuid)

        if is_user_text_turn_starter(record):
            if current is not None:
                turns.append(current.build())
            current = _TurnBuilder(user_input=record)
        else:
            if current is None:
                current = _TurnBuilder(user_input=None)
            current.add(record)

        current.uuids.append(record.uuid)
        plan_path = extract_plan_file_path(record, plans_marker)
        if plan_path:
            current.plan_file_path = plan_path

    if current is not None:
        turns.append(current.build())

    return turns


def turns_with_new_uuids(turns: list[Turn], posted: set[str]) -> list[Turn]:
    """Turns containing at least one uuid not yet posted.

    A turn with any new uuid is returned whole, including records already
    shown through another channel, so it redisplays coherently.
    """
    return [turn for turn in turns if any(uuid not in posted for uuid in turn.all_message_uuids)]
