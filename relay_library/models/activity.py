"""Activity entry models.

An activity entry is one displayable unit of agent behaviour. Entries are
immutable values; in-progress entries are replaced, never mutated. Tool
result metrics live in a separate ``ToolResult`` keyed by tool use id, so
the started fact and the result fact are joined rather than merged.
"""

from typing import Annotated
from typing import Any
from typing import Literal

from pydantic import Field

from .base import FrozenCamelCaseModel


class ToolResult(FrozenCamelCaseModel):
    """Result metrics for a completed tool call."""

    tool_use_id: str | None = None
    line_count: int | None = Field(default=None, description="Read/Write: lines in result or content")
    match_count: int | None = Field(default=None, description="Grep/Glob: number of matches or files")
    lines_added: int | None = Field(default=None, description="Edit: lines in new_string")
    lines_removed: int | None = Field(default=None, description="Edit: lines in old_string")
    output: str | None = Field(default=None, description="Tool output, capped")
    output_preview: str | None = None
    output_truncated: bool = False
    is_error: bool = False
    error_message: str | None = None
    result_timestamp: int | None = None
    execution_duration_ms: int | None = None


class _EntryBase(FrozenCamelCaseModel):
    timestamp: int = Field(description="Epoch milliseconds")


class StartingEntry(_EntryBase):
    type: Literal["starting"] = "starting"


class ThinkingEntry(_EntryBase):
    type: Literal["thinking"] = "thinking"
    thinking_content: str = ""
    thinking_truncated: str = ""
    thinking_in_progress: bool = False
    duration_ms: int | None = None


class ToolStartEntry(_EntryBase):
    type: Literal["tool_start"] = "tool_start"
    tool: str
    tool_use_id: str | None = None
    tool_input: dict[str, Any] = Field(default_factory=dict)


class ToolCompleteEntry(_EntryBase):
    type: Literal["tool_complete"] = "tool_complete"
    tool: str
    tool_use_id: str | None = None
    tool_input: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int | None = None


class GeneratingEntry(_EntryBase):
    type: Literal["generating"] = "generating"
    char_count: int = 0
    generating_content: str = ""
    generating_truncated: str = ""
    generating_in_progress: bool = False
    duration_ms: int | None = None


class ErrorEntry(_EntryBase):
    type: Literal["error"] = "error"
    message: str


class AbortedEntry(_EntryBase):
    type: Literal["aborted"] = "aborted"


class ModeChangedEntry(_EntryBase):
    type: Literal["mode_changed"] = "mode_changed"
    mode: str


class ContextClearedEntry(_EntryBase):
    type: Literal["context_cleared"] = "context_cleared"


class SessionChangedEntry(_EntryBase):
    type: Literal["session_changed"] = "session_changed"
    session_id: str
    previous_session_id: str | None = None


ActivityEntry = Annotated[
    StartingEntry
    | ThinkingEntry
    | ToolStartEntry
    | ToolCompleteEntry
    | GeneratingEntry
    | ErrorEntry
    | AbortedEntry
    | ModeChangedEntry
    | ContextClearedEntry
    | SessionChangedEntry,
    Field(discriminator="type"),
]
