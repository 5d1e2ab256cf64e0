"""
Unit tests for ActivityLog and activity text rendering.
"""

import pytest

from relay_library.activity import ActivityLog
from relay_library.activity import build_activity_log_text
from relay_library.activity.render import MAX_LIVE_ENTRIES
from relay_library.activity.render import ROLLING_WINDOW_SIZE
from relay_library.activity.render import render_entry
from relay_library.models import ErrorEntry
from relay_library.models import GeneratingEntry
from relay_library.models import ThinkingEntry
from relay_library.models import ToolCompleteEntry
from relay_library.models import ToolResult
from relay_library.models import ToolStartEntry


@pytest.mark.unit
class TestLiveView:
    """Test which entries are visible live."""

    def test_completed_tool_hides_start(self) -> None:
        """Test a start is hidden once a completion with its id exists."""
        log = ActivityLog()
        log.append(ToolStartEntry(timestamp=1, tool="Read", tool_use_id="t1"))
        log.append(ToolStartEntry(timestamp=2, tool="Grep", tool_use_id="t2"))
        log.append(ToolCompleteEntry(timestamp=3, tool="Read", tool_use_id="t1"))

        view = log.live_view()

        assert [(e.type, e.tool_use_id) for e in view] == [("tool_start", "t2"), ("tool_complete", "t1")]
        assert len(log.entries) == 3

    def test_start_without_id_matched_by_name(self) -> None:
        """Test id-less starts are hidden by a completion of the same tool."""
        log = ActivityLog()
        log.append(ToolStartEntry(timestamp=1, tool="Bash"))
        log.append(ToolCompleteEntry(timestamp=2, tool="Bash", tool_use_id="t9"))

        assert [e.type for e in log.live_view()] == ["tool_complete"]

    def test_result_lookup(self) -> None:
        """Test results are joined to entries by tool use id."""
        log = ActivityLog()
        index = log.append(ToolCompleteEntry(timestamp=1, tool="Read", tool_use_id="t1"))
        log.attach_result(ToolResult(tool_use_id="t1", line_count=4))

        assert log.result_for(log.entries[index]).line_count == 4
        assert log.result_for(GeneratingEntry(timestamp=1)) is None

    def test_markers(self) -> None:
        """Test marker helpers append their entry types."""
        log = ActivityLog()
        log.add_error("boom", 1)
        log.add_aborted(2)
        log.add_mode_changed("plan", 3)
        log.add_context_cleared(4)
        log.add_session_changed("s2", "s1", 5)

        assert [e.type for e in log.entries] == [
            "error",
            "aborted",
            "mode_changed",
            "context_cleared",
            "session_changed",
        ]

    def test_replace_leaves_copies_untouched(self) -> None:
        """Test replacing an entry does not change a previously copied entry list."""
        log = ActivityLog()
        index = log.add_error("one", 1)
        copied = list(log.entries)

        log.replace(index, ErrorEntry(timestamp=2, message="two"))

        assert copied[0].message == "one"
        assert log.entries[0].message == "two"


@pytest.mark.unit
class TestRendering:
    """Test rendered activity text."""

    def test_empty_log_placeholder(self) -> None:
        """Test an empty log renders the analyzing placeholder."""
        assert build_activity_log_text(ActivityLog()) == "Analyzing request..."

    def test_tool_complete_with_metrics(self) -> None:
        """Test a finished tool shows its input, metrics and duration."""
        entry = ToolCompleteEntry(timestamp=1, tool="Read", tool_use_id="t1", tool_input={"file_path": "/a.py"}, duration_ms=1200)
        result = ToolResult(tool_use_id="t1", line_count=12)

        assert render_entry(entry, result) == ["*Read* `/a.py` (12 lines) [1.2s]"]

    def test_tool_error_flag(self) -> None:
        """Test failed tools are flagged."""
        entry = ToolCompleteEntry(timestamp=1, tool="Bash", tool_use_id="t1", tool_input={"command": "false"})
        result = ToolResult(tool_use_id="t1", is_error=True, output_preview="exit 1")

        assert render_entry(entry, result) == ["*Bash* `false` (error)"]

    def test_in_progress_thinking(self) -> None:
        """Test streaming thinking renders a live header and preview."""
        entry = ThinkingEntry(timestamp=1, thinking_content="pondering", thinking_in_progress=True)

        assert render_entry(entry) == ["*Thinking...* _[9 chars]_", "> pondering"]

    def test_finished_query_renders_nothing_as_running(self) -> None:
        """Test in_progress=False renders streaming entries as complete and drops running markers."""
        log = ActivityLog()
        log.append(ThinkingEntry(timestamp=1, thinking_content="pondering", thinking_in_progress=True))
        log.append(ToolStartEntry(timestamp=2, tool="Bash", tool_use_id="t1", tool_input={"command": "ls"}))
        log.append(GeneratingEntry(timestamp=3, generating_content="Done", char_count=4, generating_in_progress=True))

        live = build_activity_log_text(log)
        finished = build_activity_log_text(log, in_progress=False)

        assert "*Thinking...*" in live
        assert "[in progress]" in live
        assert "*Generating...*" in live
        assert finished.splitlines() == ["*Thinking*", "> pondering", "*Bash* `ls`", "*Response* _[4 chars]_", "> Done"]

    def test_rolling_window_past_limit(self) -> None:
        """Test logs past the live limit show only the newest window."""
        log = ActivityLog()
        for index in range(MAX_LIVE_ENTRIES + 5):
            log.add_error(f"e{index}", index + 1)

        text = build_activity_log_text(log)
        lines = text.splitlines()

        hidden = MAX_LIVE_ENTRIES + 5 - ROLLING_WINDOW_SIZE
        assert lines[0] == f"_... {hidden} earlier entries (see full log after completion) ..._"
        assert lines[-1] == f"Error: e{MAX_LIVE_ENTRIES + 4}"
        assert len([line for line in lines if line.startswith("Error:")]) == ROLLING_WINDOW_SIZE

    def test_max_chars_cuts_from_head(self) -> None:
        """Test long output is cut on a line boundary from the start."""
        log = ActivityLog()
        for index in range(50):
            log.add_error(f"message number {index}", index + 1)

        text = build_activity_log_text(log, max_chars=200)

        assert len(text) <= 200
        assert text.startswith("...\n")
        assert text.endswith("Error: message number 49")
