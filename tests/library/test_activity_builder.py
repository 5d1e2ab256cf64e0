"""
Unit tests for ActivityEntryBuilder.

Covers replay from session log records and live agent stream events.
"""

import json

import pytest
from conftest import assistant_blocks
from conftest import assistant_text
from conftest import assistant_thinking
from conftest import tool_result
from conftest import tool_use

from relay_library.activity import ActivityEntryBuilder
from relay_library.activity.formatter import FULL_CONTENT_FOOTER
from relay_library.config import RelaySettings
from relay_library.models import GeneratingEntry
from relay_library.models import SessionChangedEntry
from relay_library.models import StartingEntry
from relay_library.models import ThinkingEntry
from relay_library.models import ToolCompleteEntry
from relay_library.models import ToolStartEntry
from relay_library.models.events import parse_agent_event
from relay_library.sessions.records import filter_records

PLAN_PATH = "/home/me/.claude/plans/p.md"


class FakeClock:
    """Deterministic millisecond clock advancing 100ms per call."""

    def __init__(self) -> None:
        self.now = 1_000

    def __call__(self) -> int:
        self.now += 100
        return self.now


@pytest.fixture
def builder() -> ActivityEntryBuilder:
    return ActivityEntryBuilder(clock=FakeClock())


def stream(event: dict) -> dict:
    return {"type": "stream_event", "event": event}


def feed(builder: ActivityEntryBuilder, raws: list[dict]) -> list[bool]:
    changes = []
    for raw in raws:
        event = parse_agent_event(raw)
        assert event is not None, raw
        changes.append(builder.handle_event(event))
    return changes


@pytest.mark.unit
class TestReplay:
    """Test building entries from session log records."""

    def test_long_thinking_head_truncated(self, builder: ActivityEntryBuilder) -> None:
        """Test a replayed thinking block keeps its full text and a head preview."""
        records = filter_records([assistant_thinking("a1", "A" * 3500)])

        entries = builder.add_record(records[0])

        assert len(entries) == 1
        entry = entries[0]
        assert isinstance(entry, ThinkingEntry)
        assert entry.thinking_content == "A" * 3500
        assert entry.thinking_truncated == "A" * 500 + "..."
        assert entry.thinking_in_progress is False

    def test_tool_start_without_result_stays_open(self, builder: ActivityEntryBuilder) -> None:
        """Test a tool use with no result yet produces only a start entry."""
        records = filter_records([tool_use("a1", "toolu_1", "Read", {"file_path": "/repo/a.py"})])

        builder.add_records(records)

        assert len(builder.log.entries) == 1
        start = builder.log.entries[0]
        assert isinstance(start, ToolStartEntry)
        assert start.tool == "Read"
        assert start.tool_use_id == "toolu_1"
        assert builder.log.results == {}

    def test_thinking_then_read_in_one_record(self, builder: ActivityEntryBuilder) -> None:
        """Test long thinking plus a Read in one record shows a 500-char preview and an open Read until its result."""
        record = assistant_blocks(
            "a1",
            [
                {"type": "thinking", "thinking": "A" * 3500},
                {"type": "tool_use", "id": "toolu_1", "name": "Read", "input": {"file_path": "/repo/a.py"}},
            ],
        )

        builder.add_records(filter_records([record]))
        view = builder.log.live_view()

        assert [type(e) for e in view] == [ThinkingEntry, ToolStartEntry]
        assert view[0].thinking_truncated == "A" * 500 + "..."
        assert view[1].tool == "Read"
        assert not any(isinstance(e, ToolCompleteEntry) for e in builder.log.entries)

        builder.add_records(filter_records([tool_result("u1", "toolu_1", "l1\nl2\n")]))

        assert [type(e) for e in builder.log.live_view()] == [ThinkingEntry, ToolCompleteEntry]

    def test_tool_result_completes_tool(self, builder: ActivityEntryBuilder) -> None:
        """Test the matching tool_result adds a completion and metrics."""
        records = filter_records(
            [
                tool_use("a1", "toolu_1", "Read", {"file_path": "/repo/a.py"}, "2025-01-01T00:00:00Z"),
                tool_result("u1", "toolu_1", "l1\nl2\nl3\n", timestamp="2025-01-01T00:00:02Z"),
            ]
        )

        builder.add_records(records)

        complete = builder.log.entries[-1]
        assert isinstance(complete, ToolCompleteEntry)
        assert complete.tool_use_id == "toolu_1"
        assert complete.duration_ms == 2000
        result = builder.log.results["toolu_1"]
        assert result.line_count == 3
        assert result.execution_duration_ms == 2000
        assert builder.last_completed_tool == "Read"
        assert [type(e) for e in builder.log.live_view()] == [ToolCompleteEntry]

    def test_results_without_id_complete_oldest_tool(self, builder: ActivityEntryBuilder) -> None:
        """Test id-less results pair with open tools in order."""
        first = tool_use("a1", "", "Glob", {"pattern": "*.py"})
        second = tool_use("a2", "", "Grep", {"pattern": "TODO"})
        result = tool_result("u1", "", "a.py\nb.py")
        result["message"]["content"][0].pop("tool_use_id")

        builder.add_records(filter_records([first, second, result]))

        complete = builder.log.entries[-1]
        assert isinstance(complete, ToolCompleteEntry)
        assert complete.tool == "Glob"
        assert complete.tool_use_id == "anonymous-1"
        assert builder.log.results["anonymous-1"].match_count == 2

    def test_text_becomes_generating_entry(self, builder: ActivityEntryBuilder) -> None:
        """Test assistant text is a finished generating entry."""
        builder.add_records(filter_records([assistant_text("a1", "All done.")]))

        entry = builder.log.entries[0]
        assert isinstance(entry, GeneratingEntry)
        assert entry.char_count == 9
        assert entry.generating_truncated == "All done."
        assert entry.generating_in_progress is False

    def test_block_order_preserved(self, builder: ActivityEntryBuilder) -> None:
        """Test mixed blocks produce entries in block order."""
        record = assistant_blocks(
            "a1",
            [
                {"type": "thinking", "thinking": "plan"},
                {"type": "text", "text": "Looking"},
                {"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "ls"}},
            ],
        )

        builder.add_records(filter_records([record]))

        assert [e.type for e in builder.log.entries] == ["thinking", "generating", "tool_start"]

    def test_error_result_sets_error_message(self, builder: ActivityEntryBuilder) -> None:
        """Test an error tool_result is flagged with its message."""
        builder.add_records(
            filter_records(
                [
                    tool_use("a1", "toolu_1", "Bash", {"command": "false"}),
                    tool_result("u1", "toolu_1", "exit code 1", is_error=True),
                ]
            )
        )

        result = builder.log.results["toolu_1"]
        assert result.is_error is True
        assert result.error_message == "exit code 1"

    def test_plan_file_path_tracked(self, builder: ActivityEntryBuilder) -> None:
        """Test writing a plan document records its path."""
        builder.add_records(filter_records([tool_use("a1", "toolu_1", "Write", {"file_path": PLAN_PATH, "content": "x"})]))

        assert builder.plan_file_path == PLAN_PATH

    def test_from_settings_uses_limits(self) -> None:
        """Test limits come from settings."""
        settings = RelaySettings(thinking_truncate_length=10)
        builder = ActivityEntryBuilder.from_settings(settings, clock=FakeClock())

        builder.add_records(filter_records([assistant_thinking("a1", "z" * 50)]))

        assert builder.log.entries[0].thinking_truncated == "z" * 10 + "..."

    def test_start_adds_starting_entry(self, builder: ActivityEntryBuilder) -> None:
        """Test start() records the starting marker."""
        builder.start()

        assert isinstance(builder.log.entries[0], StartingEntry)


@pytest.mark.unit
class TestLiveStream:
    """Test building entries from live agent events."""

    def test_thinking_streams_tail_then_finalizes_head(self, builder: ActivityEntryBuilder) -> None:
        """Test in-progress thinking shows its tail and the final entry its head."""
        feed(
            builder,
            [
                stream({"type": "content_block_start", "index": 0, "content_block": {"type": "thinking"}}),
                stream({"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "HEAD"}}),
                stream(
                    {
                        "type": "content_block_delta",
                        "index": 0,
                        "delta": {"type": "thinking_delta", "thinking": "X" * 4000 + "TAIL"},
                    }
                ),
            ]
        )

        live = builder.log.entries[0]
        assert isinstance(live, ThinkingEntry)
        assert live.thinking_in_progress is True
        assert live.thinking_truncated.startswith("...")
        assert live.thinking_truncated.endswith("TAIL")
        assert FULL_CONTENT_FOOTER not in live.thinking_truncated

        feed(builder, [stream({"type": "content_block_stop", "index": 0})])

        final = builder.log.entries[0]
        assert final.thinking_in_progress is False
        assert final.thinking_content == "HEAD" + "X" * 4000 + "TAIL"
        assert final.thinking_truncated.startswith("HEAD")
        assert final.thinking_truncated.endswith("...")
        assert final.duration_ms is not None and final.duration_ms > 0

    def test_text_stream_counts_characters(self, builder: ActivityEntryBuilder) -> None:
        """Test streamed text accumulates and finishes."""
        feed(
            builder,
            [
                stream({"type": "content_block_start", "index": 1, "content_block": {"type": "text", "text": ""}}),
                stream({"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "Hello "}}),
                stream({"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "world"}}),
                stream({"type": "content_block_stop", "index": 1}),
            ]
        )

        entry = builder.log.entries[0]
        assert isinstance(entry, GeneratingEntry)
        assert entry.generating_content == "Hello world"
        assert entry.char_count == 11
        assert entry.generating_in_progress is False

    def test_streamed_tool_completes_on_block_stop(self, builder: ActivityEntryBuilder) -> None:
        """Test a streamed tool parses its input and completes when its block stops."""
        feed(
            builder,
            [
                stream(
                    {
                        "type": "content_block_start",
                        "index": 0,
                        "content_block": {"type": "tool_use", "id": "toolu_9", "name": "Read", "input": {}},
                    }
                ),
                stream(
                    {
                        "type": "content_block_delta",
                        "index": 0,
                        "delta": {"type": "input_json_delta", "partial_json": '{"file_path": '},
                    }
                ),
                stream(
                    {
                        "type": "content_block_delta",
                        "index": 0,
                        "delta": {"type": "input_json_delta", "partial_json": json.dumps("/repo/x.py") + "}"},
                    }
                ),
                stream({"type": "content_block_stop", "index": 0}),
            ]
        )

        start, complete = builder.log.entries
        assert isinstance(start, ToolStartEntry)
        assert start.tool_input == {"file_path": "/repo/x.py"}
        assert isinstance(complete, ToolCompleteEntry)
        assert complete.tool_input == {"file_path": "/repo/x.py"}
        assert builder.last_completed_tool == "Read"

        feed(
            builder,
            [
                {
                    "type": "user",
                    "message": {
                        "role": "user",
                        "content": [{"type": "tool_result", "tool_use_id": "toolu_9", "content": "a\nb"}],
                    },
                }
            ],
        )

        assert len([e for e in builder.log.entries if isinstance(e, ToolCompleteEntry)]) == 1
        assert builder.log.results["toolu_9"].line_count == 2

    def test_assistant_message_after_stream_adds_nothing_known(self, builder: ActivityEntryBuilder) -> None:
        """Test the closing assistant message does not duplicate streamed blocks."""
        feed(
            builder,
            [
                stream({"type": "content_block_start", "index": 0, "content_block": {"type": "text"}}),
                stream({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}}),
                stream({"type": "content_block_stop", "index": 0}),
            ]
        )

        changed = feed(
            builder,
            [{"type": "assistant", "message": {"role": "assistant", "content": [{"type": "text", "text": "Hi"}]}}],
        )

        assert changed == [False]
        assert len(builder.log.entries) == 1

    def test_init_tracks_session_and_reports_change(self, builder: ActivityEntryBuilder) -> None:
        """Test a new session id after the first init adds a session_changed entry."""
        feed(builder, [{"type": "system", "subtype": "init", "session_id": "s1", "model": "m"}])
        assert builder.session_id == "s1"
        assert builder.log.entries == []

        feed(builder, [{"type": "system", "subtype": "init", "session_id": "s2"}])

        entry = builder.log.entries[-1]
        assert isinstance(entry, SessionChangedEntry)
        assert entry.previous_session_id == "s1"
        assert builder.session_id == "s2"

    def test_result_event_records_outcome(self, builder: ActivityEntryBuilder) -> None:
        """Test the result event stores the final text, usage and duration."""
        changed = feed(
            builder,
            [{"type": "result", "subtype": "success", "result": "Done", "usage": {"input_tokens": 5}, "duration_ms": 42}],
        )

        assert changed == [False]
        assert builder.final_result == "Done"
        assert builder.usage == {"input_tokens": 5}
        assert builder.duration_ms == 42

    def test_error_result_adds_error_entry(self, builder: ActivityEntryBuilder) -> None:
        """Test an error result appears in the log."""
        feed(builder, [{"type": "result", "subtype": "error_during_execution", "is_error": True}])

        assert builder.log.entries[-1].type == "error"
        assert builder.log.entries[-1].message == "error_during_execution"

    def test_delta_for_unknown_block_is_ignored(self, builder: ActivityEntryBuilder) -> None:
        """Test deltas for blocks never started change nothing."""
        changed = feed(
            builder,
            [stream({"type": "content_block_delta", "index": 5, "delta": {"type": "text_delta", "text": "x"}})],
        )

        assert changed == [False]
        assert builder.log.entries == []
