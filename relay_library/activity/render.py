"""Render an activity log as live status text."""

from ..models import AbortedEntry
from ..models import ActivityEntry
from ..models import ContextClearedEntry
from ..models import ErrorEntry
from ..models import GeneratingEntry
from ..models import ModeChangedEntry
from ..models import SessionChangedEntry
from ..models import StartingEntry
from ..models import ThinkingEntry
from ..models import ToolCompleteEntry
from ..models import ToolResult
from ..models import ToolStartEntry
from .formatter import TruncationMode
from .formatter import format_duration
from .formatter import format_rolling_text
from .formatter import format_tool_name
from .formatter import single_line
from .formatter import tool_input_summary
from .formatter import tool_result_summary
from .formatter import truncate_preview
from .log import ActivityLog

MAX_LIVE_ENTRIES = 300
ROLLING_WINDOW_SIZE = 20
LIVE_PREVIEW_LENGTH = 300
THINKING_PREVIEW_LENGTH = 500
OUTPUT_HINT_LENGTH = 50


def _render_thinking(entry: ThinkingEntry, in_progress: bool = True) -> list[str]:
    content = entry.thinking_content or entry.thinking_truncated
    char_count = len(entry.thinking_content) or len(entry.thinking_truncated)
    duration = format_duration(entry.duration_ms)
    text = single_line(content)

    if entry.thinking_in_progress and in_progress:
        chars = f" _[{char_count} chars]_" if char_count else ""
        lines = [f"*Thinking...*{duration}{chars}"]
        preview = format_rolling_text(text, LIVE_PREVIEW_LENGTH, TruncationMode.TAIL, in_progress=True)
    else:
        chars = f" _[{char_count} chars]_" if char_count > THINKING_PREVIEW_LENGTH else ""
        lines = [f"*Thinking*{duration}{chars}"]
        preview = truncate_preview(text, THINKING_PREVIEW_LENGTH, TruncationMode.TAIL)
    if preview:
        lines.append(f"> {preview}")
    return lines


def _render_generating(entry: GeneratingEntry, in_progress: bool = True) -> list[str]:
    content = entry.generating_content or entry.generating_truncated
    char_count = entry.char_count or len(content)
    chars = f" _[{char_count:,} chars]_" if char_count else ""
    label = "Generating..." if entry.generating_in_progress and in_progress else "Response"
    lines = [f"*{label}*{format_duration(entry.duration_ms)}{chars}"]
    preview = truncate_preview(single_line(content), LIVE_PREVIEW_LENGTH)
    if preview:
        lines.append(f"> {preview}")
    return lines


def _render_tool_complete(entry: ToolCompleteEntry, result: ToolResult | None) -> str:
    summary = tool_input_summary(entry.tool, entry.tool_input)
    metrics = ""
    output_hint = ""
    error_flag = ""
    if result is not None:
        metrics = tool_result_summary(
            match_count=result.match_count,
            line_count=result.line_count,
            lines_added=result.lines_added,
            lines_removed=result.lines_removed,
        )
        if result.is_error:
            error_flag = " (error)"
        elif result.output_preview:
            output_hint = f" -> `{truncate_preview(single_line(result.output_preview), OUTPUT_HINT_LENGTH)}`"
    name = format_tool_name(entry.tool)
    return f"*{name}*{summary}{metrics}{output_hint}{format_duration(entry.duration_ms)}{error_flag}"


def render_entry(entry: ActivityEntry, result: ToolResult | None = None, in_progress: bool = True) -> list[str]:
    """Lines for a single entry; tool results are passed in by the caller.

    With ``in_progress`` False the query has ended, so nothing is rendered
    as still streaming or running.
    """
    if isinstance(entry, StartingEntry):
        return ["*Analyzing request...*"]
    if isinstance(entry, ThinkingEntry):
        return _render_thinking(entry, in_progress)
    if isinstance(entry, ToolStartEntry):
        summary = tool_input_summary(entry.tool, entry.tool_input)
        running = " [in progress]" if in_progress else ""
        return [f"*{format_tool_name(entry.tool)}*{summary}{running}"]
    if isinstance(entry, ToolCompleteEntry):
        return [_render_tool_complete(entry, result)]
    if isinstance(entry, GeneratingEntry):
        return _render_generating(entry, in_progress)
    if isinstance(entry, ErrorEntry):
        return [f"Error: {entry.message}"]
    if isinstance(entry, AbortedEntry):
        return ["*Aborted by user*"]
    if isinstance(entry, ModeChangedEntry):
        return [f"Mode changed to *{entry.mode}*"]
    if isinstance(entry, ContextClearedEntry):
        return ["------ Context Cleared ------"]
    if isinstance(entry, SessionChangedEntry):
        if entry.previous_session_id:
            return [f"Previous session: `{entry.previous_session_id}`"]
        return []
    return []


def build_activity_log_text(log: ActivityLog, in_progress: bool = True, max_chars: int | None = None) -> str:
    """Render the live view of an activity log.

    ``in_progress`` is False once the query has finished: entries still
    flagged as streaming render as complete and unfinished tools lose their
    running marker.

    Completed tools hide their start entry. Past ``MAX_LIVE_ENTRIES`` only
    the last ``ROLLING_WINDOW_SIZE`` entries are shown behind a notice, and
    output beyond ``max_chars`` is cut from the head on a line boundary.
    """
    view = log.live_view()
    lines: list[str] = []

    if len(log.entries) > MAX_LIVE_ENTRIES:
        hidden = len(view) - ROLLING_WINDOW_SIZE
        view = view[-ROLLING_WINDOW_SIZE:]
        if hidden > 0:
            lines.append(f"_... {hidden} earlier entries (see full log after completion) ..._\n")

    for entry in view:
        lines.extend(render_entry(entry, log.result_for(entry), in_progress))

    if not lines:
        lines.append("Analyzing request...")

    text = "\n".join(lines)
    if max_chars is not None and len(text) > max_chars:
        excess = len(text) - max_chars + 50
        break_point = text.find("\n", excess)
        if break_point > 0:
            text = "...\n" + text[break_point + 1 :]
        else:
            text = "..." + text[len(text) - max_chars + 3 :]
    return text
