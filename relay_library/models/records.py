"""Session log record models.

One JSON object per line of the agent's session log. Only the fields the
relay consumes are modeled; everything else on the line is ignored.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .base import CamelCaseModel


class ContentBlock(BaseModel):
    """A typed block inside a message's content array.

    Block keys are snake_case on the wire (``tool_use_id``, ``is_error``),
    unlike the record envelope.
    """

    model_config = ConfigDict(extra="ignore")

    type: str = Field(description="Block type: text, thinking, tool_use, tool_result")
    text: str | None = None
    thinking: str | None = None
    id: str | None = Field(default=None, description="Tool use identifier (tool_use blocks)")
    name: str | None = Field(default=None, description="Tool name (tool_use blocks)")
    input: dict[str, Any] | None = None
    tool_use_id: str | None = Field(default=None, description="Correlates a tool_result to its tool_use")
    content: Any = None
    is_error: bool | None = None

    def result_text(self) -> str:
        """Flatten a tool_result block's content into plain text."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            parts = []
            for item in self.content:
                if isinstance(item, dict) and item.get("type") == "text":
                    parts.append(str(item.get("text", "")))
            return "\n".join(parts)
        return str(self.content)


class MessageBody(BaseModel):
    """The ``message`` object of a log record."""

    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | list[ContentBlock] = ""


class LogRecord(CamelCaseModel):
    """One parsed, kept line from the session log.

    Records are append-only and never rewritten, so ``uuid`` is a stable
    identity for idempotent replay.
    """

    model_config = ConfigDict(extra="ignore")

    kind: str = Field(alias="type", description="Record type: user or assistant")
    uuid: str = Field(description="Unique record identifier within the log")
    timestamp: str | None = Field(default=None, description="ISO8601 timestamp")
    session_id: str | None = Field(default=None, description="Agent session identifier")
    message: MessageBody | None = None
    tool_use_result: Any = Field(default=None, description="Side-channel tool result payload")

    @property
    def content_blocks(self) -> list[ContentBlock]:
        """Message content as blocks; plain string content becomes one text block."""
        if self.message is None:
            return []
        content = self.message.content
        if isinstance(content, str):
            return [ContentBlock(type="text", text=content)] if content else []
        return list(content)

    @property
    def has_content(self) -> bool:
        if self.message is None:
            return False
        content = self.message.content
        if isinstance(content, str):
            return bool(content.strip())
        return len(content) > 0

    @property
    def timestamp_ms(self) -> int | None:
        """Timestamp as epoch milliseconds, or None when absent or unparseable."""
        if not self.timestamp:
            return None
        try:
            return int(datetime.fromisoformat(self.timestamp.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            return None
