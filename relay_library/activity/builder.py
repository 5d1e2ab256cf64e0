"""Build activity entries from session log records or a live agent stream.

Two inputs feed the same ActivityLog:

- Replay: whole assistant/user records from the session log. Thinking,
  named tool uses and non-empty text each become one entry in block order.
  A tool completes when its tool_result arrives in a later user record.
- Live: ``stream_event`` deltas from the agent process. Thinking and text
  entries are in progress until their block stops; a tool completes when
  its input block stops, and the later tool_result fills in its metrics.

Contract:
- Inputs: LogRecord values or parsed AgentEvent values
- Outputs: Entries appended to ``builder.log``
- Side Effects: None
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from ..config.settings import RelaySettings
from ..models import ActivityEntry
from ..models import ContentBlock
from ..models import GeneratingEntry
from ..models import LogRecord
from ..models import StartingEntry
from ..models import ThinkingEntry
from ..models import ToolCompleteEntry
from ..models import ToolStartEntry
from ..models.events import AgentEvent
from ..models.events import AssistantEvent
from ..models.events import ContentBlockDeltaEvent
from ..models.events import ContentBlockStartEvent
from ..models.events import ContentBlockStopEvent
from ..models.events import InitEvent
from ..models.events import InputJsonDelta
from ..models.events import ResultEvent
from ..models.events import TextDelta
from ..models.events import ThinkingDelta
from ..models.events import UserEvent
from ..models.records import MessageBody
from ..sessions.records import DEFAULT_PLANS_MARKER
from ..sessions.records import is_plan_file_path
from ..sessions.records import tool_use_result_plan
from .formatter import TruncationMode
from .formatter import format_rolling_text
from .formatter import truncate_preview
from .log import ActivityLog
from .log import now_ms
from .metrics import compute_tool_result

logger = logging.getLogger(__name__)


@dataclass
class _OpenTool:
    name: str
    tool_use_id: str
    tool_input: dict[str, Any]
    started_ms: int
    start_index: int
    completed: bool = False


@dataclass
class _OpenBlock:
    kind: str
    started_ms: int
    entry_index: int | None = None
    tool_use_id: str | None = None
    buffer: list[str] = field(default_factory=list)

    @property
    def text(self: "_OpenBlock") -> str:
        return "".join(self.buffer)


def _message_blocks(message: MessageBody) -> list[ContentBlock]:
    if isinstance(message.content, str):
        return [ContentBlock(type="text", text=message.content)] if message.content else []
    return list(message.content)


class ActivityEntryBuilder:
    """Accumulates the activity of one agent query.

    Example:
        >>> builder = ActivityEntryBuilder()
        >>> for record in records:
        ...     builder.add_record(record)
        >>> view = builder.log.live_view()
    """

    def __init__(
        self: "ActivityEntryBuilder",
        clock: Callable[[], int] = now_ms,
        thinking_limit: int = 500,
        live_text_limit: int = 300,
        preview_limit: int = 300,
        output_max_chars: int = 50_000,
        plans_marker: str = DEFAULT_PLANS_MARKER,
    ) -> None:
        self.clock = clock
        self.thinking_limit = thinking_limit
        self.live_text_limit = live_text_limit
        self.preview_limit = preview_limit
        self.output_max_chars = output_max_chars
        self.plans_marker = plans_marker

        self.log = ActivityLog()
        self.session_id: str | None = None
        self.model: str | None = None
        self.final_result: str | None = None
        self.usage: dict[str, Any] | None = None
        self.duration_ms: int | None = None
        self.last_completed_tool: str | None = None
        self.plan_file_path: str | None = None

        self._open_tools: dict[str, _OpenTool] = {}
        self._seen_tool_ids: set[str] = set()
        self._blocks: dict[int, _OpenBlock] = {}
        self._anonymous_tools = 0
        self._streamed = False

        self._handlers: dict[type, Callable[[Any], bool]] = {
            InitEvent: self._on_init,
            ContentBlockStartEvent: self._on_block_start,
            ContentBlockDeltaEvent: self._on_block_delta,
            ContentBlockStopEvent: self._on_block_stop,
            AssistantEvent: self._on_assistant,
            UserEvent: self._on_user,
            ResultEvent: self._on_result,
        }

    @classmethod
    def from_settings(cls, settings: RelaySettings, clock: Callable[[], int] = now_ms) -> "ActivityEntryBuilder":
        return cls(
            clock=clock,
            thinking_limit=settings.thinking_truncate_length,
            live_text_limit=settings.live_text_limit,
            preview_limit=settings.tool_output_preview_length,
            output_max_chars=settings.tool_output_max_chars,
            plans_marker=settings.plans_dir_marker,
        )

    def start(self: "ActivityEntryBuilder") -> None:
        self.log.append(StartingEntry(timestamp=self.clock()))

    # Replay from the session log

    def add_record(self: "ActivityEntryBuilder", record: LogRecord) -> list[ActivityEntry]:
        """Add one log record and return the entries it produced."""
        before = len(self.log)
        timestamp = record.timestamp_ms or self.clock()
        if record.kind == "assistant":
            self._add_assistant_blocks(record.content_blocks, timestamp)
        elif record.kind == "user":
            self._add_tool_results(record.content_blocks, record.tool_use_result, timestamp)
        return self.log.entries[before:]

    def add_records(self: "ActivityEntryBuilder", records: list[LogRecord]) -> None:
        for record in records:
            self.add_record(record)

    def _add_assistant_blocks(
        self: "ActivityEntryBuilder",
        blocks: list[ContentBlock],
        timestamp: int,
        skip_known_tools: bool = False,
    ) -> None:
        for block in blocks:
            if block.type == "thinking":
                if skip_known_tools or not block.thinking:
                    continue
                self.log.append(
                    ThinkingEntry(
                        timestamp=timestamp,
                        thinking_content=block.thinking,
                        thinking_truncated=truncate_preview(block.thinking, self.thinking_limit),
                    )
                )
            elif block.type == "tool_use":
                if not block.name:
                    continue
                if skip_known_tools and block.id in self._seen_tool_ids:
                    continue
                self._start_tool(block.id, block.name, block.input or {}, timestamp)
            elif block.type == "text":
                if skip_known_tools or not block.text or not block.text.strip():
                    continue
                self.log.append(
                    GeneratingEntry(
                        timestamp=timestamp,
                        char_count=len(block.text),
                        generating_content=block.text,
                        generating_truncated=truncate_preview(block.text, self.live_text_limit),
                    )
                )

    def _start_tool(
        self: "ActivityEntryBuilder",
        tool_use_id: str | None,
        name: str,
        tool_input: dict[str, Any],
        timestamp: int,
    ) -> str:
        if not tool_use_id:
            self._anonymous_tools += 1
            tool_use_id = f"anonymous-{self._anonymous_tools}"
        index = self.log.append(
            ToolStartEntry(timestamp=timestamp, tool=name, tool_use_id=tool_use_id, tool_input=tool_input)
        )
        self._open_tools[tool_use_id] = _OpenTool(
            name=name,
            tool_use_id=tool_use_id,
            tool_input=tool_input,
            started_ms=timestamp,
            start_index=index,
        )
        self._seen_tool_ids.add(tool_use_id)
        self._note_plan_input(tool_input)
        return tool_use_id

    def _note_plan_input(self: "ActivityEntryBuilder", tool_input: dict[str, Any]) -> None:
        for key in ("file_path", "path"):
            if is_plan_file_path(tool_input.get(key), self.plans_marker):
                self.plan_file_path = tool_input[key]
                return

    def _match_open_tool(self: "ActivityEntryBuilder", tool_use_id: str | None) -> _OpenTool | None:
        if tool_use_id:
            tool = self._open_tools.pop(tool_use_id, None)
            if tool is None:
                logger.debug(f"No open tool for result {tool_use_id}")
            return tool
        # Results without an id complete the oldest open tool
        for key in self._open_tools:
            return self._open_tools.pop(key)
        return None

    def _add_tool_results(
        self: "ActivityEntryBuilder",
        blocks: list[ContentBlock],
        tool_use_result: Any,
        timestamp: int,
    ) -> None:
        for block in blocks:
            if block.type != "tool_result":
                continue
            tool = self._match_open_tool(block.tool_use_id)
            if tool is None:
                continue

            if not tool.completed:
                self.log.append(
                    ToolCompleteEntry(
                        timestamp=timestamp,
                        tool=tool.name,
                        tool_use_id=tool.tool_use_id,
                        tool_input=tool.tool_input,
                        duration_ms=max(0, timestamp - tool.started_ms),
                    )
                )
                self.last_completed_tool = tool.name

            self.log.attach_result(
                compute_tool_result(
                    tool.name,
                    tool.tool_input,
                    block.result_text(),
                    is_error=bool(block.is_error),
                    tool_use_id=tool.tool_use_id,
                    tool_use_result=tool_use_result,
                    started_ms=tool.started_ms,
                    result_ms=timestamp,
                    preview_limit=self.preview_limit,
                    max_chars=self.output_max_chars,
                )
            )

        side_channel = tool_use_result_plan(tool_use_result, self.plans_marker)
        if side_channel:
            self.plan_file_path = side_channel[0]

    # Live agent stream

    def handle_event(self: "ActivityEntryBuilder", event: AgentEvent) -> bool:
        """Apply one agent event. Returns True when the visible log changed."""
        handler = self._handlers.get(type(event))
        if handler is None:
            return False
        return handler(event)

    def _on_init(self: "ActivityEntryBuilder", event: InitEvent) -> bool:
        changed = False
        if event.session_id and self.session_id and event.session_id != self.session_id:
            self.log.add_session_changed(event.session_id, self.session_id, self.clock())
            changed = True
        if event.session_id:
            self.session_id = event.session_id
        if event.model:
            self.model = event.model
        return changed

    def _on_block_start(self: "ActivityEntryBuilder", event: ContentBlockStartEvent) -> bool:
        self._streamed = True
        block = event.content_block
        now = self.clock()

        if block.type == "thinking":
            index = self.log.append(ThinkingEntry(timestamp=now, thinking_in_progress=True))
            self._blocks[event.index] = _OpenBlock(kind="thinking", started_ms=now, entry_index=index)
            return True
        if block.type == "text":
            index = self.log.append(GeneratingEntry(timestamp=now, generating_in_progress=True))
            self._blocks[event.index] = _OpenBlock(kind="text", started_ms=now, entry_index=index)
            return True
        if block.type == "tool_use" and block.name:
            tool_use_id = self._start_tool(block.id, block.name, block.input or {}, now)
            self._blocks[event.index] = _OpenBlock(kind="tool_use", started_ms=now, tool_use_id=tool_use_id)
            return True
        return False

    def _on_block_delta(self: "ActivityEntryBuilder", event: ContentBlockDeltaEvent) -> bool:
        block = self._blocks.get(event.index)
        if block is None:
            return False
        delta = event.delta
        now = self.clock()

        if isinstance(delta, ThinkingDelta) and block.kind == "thinking":
            block.buffer.append(delta.thinking)
            content = block.text
            entry = self.log.entries[block.entry_index]
            self.log.replace(
                block.entry_index,
                entry.model_copy(
                    update={
                        "thinking_content": content,
                        "thinking_truncated": format_rolling_text(
                            content, self.thinking_limit, TruncationMode.TAIL, in_progress=True
                        ),
                        "duration_ms": now - block.started_ms,
                    }
                ),
            )
            return True
        if isinstance(delta, TextDelta) and block.kind == "text":
            block.buffer.append(delta.text)
            content = block.text
            entry = self.log.entries[block.entry_index]
            self.log.replace(
                block.entry_index,
                entry.model_copy(
                    update={
                        "char_count": len(content),
                        "generating_content": content,
                        "generating_truncated": format_rolling_text(
                            content, self.live_text_limit, TruncationMode.TAIL, in_progress=True
                        ),
                        "duration_ms": now - block.started_ms,
                    }
                ),
            )
            return True
        if isinstance(delta, InputJsonDelta) and block.kind == "tool_use":
            block.buffer.append(delta.partial_json)
        return False

    def _on_block_stop(self: "ActivityEntryBuilder", event: ContentBlockStopEvent) -> bool:
        block = self._blocks.pop(event.index, None)
        if block is None:
            return False
        now = self.clock()

        if block.kind == "thinking":
            entry = self.log.entries[block.entry_index]
            content = block.text
            self.log.replace(
                block.entry_index,
                entry.model_copy(
                    update={
                        "thinking_content": content,
                        "thinking_truncated": truncate_preview(content, self.thinking_limit),
                        "thinking_in_progress": False,
                        "duration_ms": now - block.started_ms,
                    }
                ),
            )
            return True
        if block.kind == "text":
            entry = self.log.entries[block.entry_index]
            content = block.text
            self.log.replace(
                block.entry_index,
                entry.model_copy(
                    update={
                        "char_count": len(content),
                        "generating_content": content,
                        "generating_truncated": truncate_preview(content, self.live_text_limit),
                        "generating_in_progress": False,
                        "duration_ms": now - block.started_ms,
                    }
                ),
            )
            return True
        if block.kind == "tool_use":
            return self._complete_streamed_tool(block, now)
        return False

    def _complete_streamed_tool(self: "ActivityEntryBuilder", block: _OpenBlock, now: int) -> bool:
        tool = self._open_tools.get(block.tool_use_id)
        if tool is None:
            return False

        if block.buffer:
            try:
                parsed = json.loads(block.text)
            except json.JSONDecodeError as e:
                logger.debug(f"Unparseable input for tool {tool.name}: {e}")
                parsed = None
            if isinstance(parsed, dict):
                tool.tool_input = parsed
                start = self.log.entries[tool.start_index]
                self.log.replace(tool.start_index, start.model_copy(update={"tool_input": parsed}))
                self._note_plan_input(parsed)

        self.log.append(
            ToolCompleteEntry(
                timestamp=now,
                tool=tool.name,
                tool_use_id=tool.tool_use_id,
                tool_input=tool.tool_input,
                duration_ms=now - tool.started_ms,
            )
        )
        tool.completed = True
        self.last_completed_tool = tool.name
        return True

    def _on_assistant(self: "ActivityEntryBuilder", event: AssistantEvent) -> bool:
        before = len(self.log)
        # Streamed blocks were already rendered; only pick up tools the stream missed
        self._add_assistant_blocks(_message_blocks(event.message), self.clock(), skip_known_tools=self._streamed)
        return len(self.log) != before

    def _on_user(self: "ActivityEntryBuilder", event: UserEvent) -> bool:
        before = len(self.log)
        results_before = len(self.log.results)
        self._add_tool_results(_message_blocks(event.message), event.tool_use_result, self.clock())
        return len(self.log) != before or len(self.log.results) != results_before

    def _on_result(self: "ActivityEntryBuilder", event: ResultEvent) -> bool:
        self.final_result = event.result
        self.usage = event.usage
        self.duration_ms = event.duration_ms
        if event.session_id and not self.session_id:
            self.session_id = event.session_id
        if event.is_error:
            self.log.add_error(event.result or event.subtype or "Agent reported an error", self.clock())
            return True
        return False

    def mark_aborted(self: "ActivityEntryBuilder") -> None:
        self.log.add_aborted(self.clock())

    def mark_error(self: "ActivityEntryBuilder", message: str) -> None:
        self.log.add_error(message, self.clock())
