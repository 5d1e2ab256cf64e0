"""Bounded-length text rendering for live and completed content.

Everything here is pure: no I/O and no mutation of arguments.
"""

from enum import Enum
from typing import Any

ELLIPSIS = "..."
FULL_CONTENT_FOOTER = "_Full content attached._"


class TruncationMode(str, Enum):
    """Which end of a long text stays visible."""

    HEAD = "head"
    TAIL = "tail"


def format_rolling_text(
    content: str,
    limit: int,
    mode: TruncationMode | str = TruncationMode.HEAD,
    in_progress: bool = False,
    footer: str | None = FULL_CONTENT_FOOTER,
) -> str:
    """Render ``content`` within ``limit`` characters.

    Head mode keeps the first ``limit`` characters followed by an ellipsis.
    Tail mode keeps the last ``limit`` characters behind a leading ellipsis,
    so the newest text of a growing block stays visible. Content that fits
    is returned unchanged in either mode.

    Args:
        content: Text to render
        limit: Maximum characters of content to keep
        mode: Head or tail truncation
        in_progress: Content is still growing; suppresses the footer
        footer: Line appended when truncated final content has a full copy elsewhere

    Returns:
        Rendered text

    Example:
        >>> format_rolling_text("abcdef", 3, "tail")
        '...def'
    """
    if len(content) <= limit:
        return content

    if TruncationMode(mode) == TruncationMode.TAIL:
        rendered = ELLIPSIS + content[len(content) - limit :]
    else:
        rendered = content[:limit] + ELLIPSIS

    if footer and not in_progress:
        rendered = f"{rendered}\n{footer}"
    return rendered


def truncate_preview(content: str, limit: int, mode: TruncationMode | str = TruncationMode.HEAD) -> str:
    """Truncate for an inline preview, never adding a footer."""
    return format_rolling_text(content, limit, mode, in_progress=False, footer=None)


def format_duration(duration_ms: int | None) -> str:
    if not duration_ms:
        return ""
    return f" [{duration_ms / 1000:.1f}s]"


def format_tool_name(tool_name: str) -> str:
    """Strip MCP-style prefixes: ``mcp__server__Read`` becomes ``Read``."""
    if "__" not in tool_name:
        return tool_name
    return tool_name.split("__")[-1]


def _shorten(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + ELLIPSIS


def _shorten_path(path: str, limit: int) -> str:
    if len(path) <= limit:
        return path
    parts = path.split("/")
    if len(parts) <= 2:
        return path[-limit:]
    last_two = "/".join(parts[-2:])
    if len(last_two) <= limit:
        return last_two
    return ELLIPSIS + path[-(limit - 3) :]


def _todo_summary(todos: Any) -> str:
    if not isinstance(todos, list):
        return ""
    statuses = [item.get("status") for item in todos if isinstance(item, dict)]
    parts = []
    for status, symbol in (("completed", "done"), ("in_progress", "active"), ("pending", "pending")):
        count = statuses.count(status)
        if count:
            parts.append(f"{count} {symbol}")
    return f" {', '.join(parts)}" if parts else ""


def tool_input_summary(tool_name: str, tool_input: dict[str, Any] | None) -> str:
    """Compact rendering of a tool call's key parameter."""
    if not tool_input:
        return ""
    tool = format_tool_name(tool_name).lower()

    if tool in ("read", "edit", "write"):
        path = tool_input.get("file_path")
        return f" `{_shorten_path(path, 40)}`" if isinstance(path, str) else ""
    if tool == "grep":
        pattern = tool_input.get("pattern")
        return f' `"{_shorten(pattern, 25)}"`' if isinstance(pattern, str) else ""
    if tool == "glob":
        pattern = tool_input.get("pattern")
        return f" `{_shorten(pattern, 30)}`" if isinstance(pattern, str) else ""
    if tool == "bash":
        command = tool_input.get("command")
        return f" `{_shorten(command, 35)}`" if isinstance(command, str) else ""
    if tool == "task":
        subtype = f":{tool_input['subagent_type']}" if tool_input.get("subagent_type") else ""
        description = tool_input.get("description")
        desc = f' "{_shorten(description, 25)}"' if isinstance(description, str) else ""
        return f"{subtype}{desc}"
    if tool == "webfetch":
        url = tool_input.get("url")
        return f" `{_shorten(url, 35)}`" if isinstance(url, str) else ""
    if tool == "websearch":
        query = tool_input.get("query")
        return f' "{_shorten(query, 30)}"' if isinstance(query, str) else ""
    if tool == "todowrite":
        return _todo_summary(tool_input.get("todos"))
    if tool == "askuserquestion":
        return ""

    for key, value in tool_input.items():
        if isinstance(value, str) and 0 < len(value) < 50 and not key.startswith("_"):
            return f" `{_shorten(value, 30)}`"
    return ""


def tool_result_summary(
    match_count: int | None = None,
    line_count: int | None = None,
    lines_added: int | None = None,
    lines_removed: int | None = None,
) -> str:
    """Inline result metrics: match count, line count or diff size."""
    if match_count is not None:
        noun = "match" if match_count == 1 else "matches"
        return f" -> {match_count} {noun}"
    if line_count is not None:
        return f" ({line_count} lines)"
    if lines_added is not None or lines_removed is not None:
        return f" (+{lines_added or 0}/-{lines_removed or 0})"
    return ""


def single_line(text: str) -> str:
    return " ".join(text.split())


def format_thinking_message(
    content: str,
    limit: int,
    in_progress: bool,
    duration_ms: int | None = None,
    preserve_tail: bool = False,
) -> str:
    """Render one thinking block as a standalone thread message.

    While streaming the newest text is shown. Once complete the head is
    shown, or the tail (the conclusion) with ``preserve_tail``, followed by
    the attachment footer when anything was cut.
    """
    char_info = f" _{len(content):,} chars_" if content else ""
    label = "Thinking..." if in_progress else "Thinking"
    lines = [f"*{label}*{format_duration(duration_ms)}{char_info}"]
    if content:
        mode = TruncationMode.TAIL if in_progress or preserve_tail else TruncationMode.HEAD
        lines.append(format_rolling_text(content, limit, mode, in_progress=in_progress))
    return "\n".join(lines)
