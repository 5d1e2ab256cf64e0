"""Result metrics for completed tool calls."""

from typing import Any

from ..models import ToolResult
from .formatter import format_tool_name
from .formatter import truncate_preview


def _count_lines(text: str) -> int:
    if not text:
        return 0
    return len(text.rstrip("\n").split("\n"))


def _count_nonempty_lines(text: str) -> int:
    return sum(1 for line in text.split("\n") if line.strip())


def _side_channel_line_count(tool_use_result: Any) -> int | None:
    if not isinstance(tool_use_result, dict):
        return None
    file_info = tool_use_result.get("file")
    if isinstance(file_info, dict) and isinstance(file_info.get("numLines"), int):
        return file_info["numLines"]
    return None


def compute_tool_result(
    tool_name: str,
    tool_input: dict[str, Any] | None,
    output: str,
    is_error: bool = False,
    tool_use_id: str | None = None,
    tool_use_result: Any = None,
    started_ms: int | None = None,
    result_ms: int | None = None,
    preview_limit: int = 300,
    max_chars: int = 50_000,
) -> ToolResult:
    """Derive display metrics from a tool's input and output.

    Args:
        tool_name: Tool name as reported by the agent
        tool_input: Tool call input
        output: Flattened tool_result text
        is_error: Whether the tool reported an error
        tool_use_id: Correlation id of the call
        tool_use_result: Side-channel result payload, if the record carried one
        started_ms: When the tool call started (epoch ms)
        result_ms: When the result arrived (epoch ms)
        preview_limit: Characters kept in ``output_preview``
        max_chars: Characters kept in ``output``

    Returns:
        ToolResult metrics
    """
    tool = format_tool_name(tool_name).lower()
    tool_input = tool_input or {}
    metrics: dict[str, Any] = {}

    if not is_error:
        if tool == "read":
            side_channel = _side_channel_line_count(tool_use_result)
            metrics["line_count"] = side_channel if side_channel is not None else _count_lines(output)
        elif tool == "write":
            content = tool_input.get("content")
            if isinstance(content, str):
                metrics["line_count"] = _count_lines(content)
        elif tool in ("edit", "multiedit"):
            new_string = tool_input.get("new_string")
            old_string = tool_input.get("old_string")
            if isinstance(new_string, str):
                metrics["lines_added"] = _count_lines(new_string)
            if isinstance(old_string, str):
                metrics["lines_removed"] = _count_lines(old_string)
        elif tool in ("grep", "glob"):
            num_files = tool_use_result.get("numFiles") if isinstance(tool_use_result, dict) else None
            metrics["match_count"] = num_files if isinstance(num_files, int) else _count_nonempty_lines(output)

    duration = None
    if started_ms is not None and result_ms is not None:
        duration = max(0, result_ms - started_ms)

    return ToolResult(
        tool_use_id=tool_use_id,
        output=output[:max_chars],
        output_preview=truncate_preview(output, preview_limit) if output else None,
        output_truncated=len(output) > max_chars,
        is_error=is_error,
        error_message=truncate_preview(output, preview_limit) if is_error else None,
        result_timestamp=result_ms,
        execution_duration_ms=duration,
        **metrics,
    )
