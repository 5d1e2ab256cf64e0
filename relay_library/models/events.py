"""Agent event stream models.

The agent process emits an async sequence of loosely-typed dictionaries.
``parse_agent_event`` turns each one into exactly one of the event classes
below, or None for shapes the relay does not consume (message_start,
signature deltas, hook notices, ...).

Contract:
- Inputs: Raw event dictionaries from the agent SDK
- Outputs: Typed AgentEvent values
- Side Effects: None
"""

import logging
from typing import Annotated
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import TypeAdapter
from pydantic import ValidationError

from .records import ContentBlock
from .records import MessageBody

logger = logging.getLogger(__name__)


class _Event(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ThinkingDelta(_Event):
    type: Literal["thinking_delta"] = "thinking_delta"
    thinking: str = ""


class TextDelta(_Event):
    type: Literal["text_delta"] = "text_delta"
    text: str = ""


class InputJsonDelta(_Event):
    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str = ""


BlockDelta = Annotated[ThinkingDelta | TextDelta | InputJsonDelta, Field(discriminator="type")]


class InitEvent(_Event):
    """``system/init``: carries the agent session id and model."""

    session_id: str | None = None
    model: str | None = None


class ContentBlockStartEvent(_Event):
    index: int = 0
    content_block: ContentBlock


class ContentBlockDeltaEvent(_Event):
    index: int = 0
    delta: BlockDelta


class ContentBlockStopEvent(_Event):
    index: int = 0


class AssistantEvent(_Event):
    """A complete assistant message."""

    message: MessageBody


class UserEvent(_Event):
    """A user message echoed by the agent, normally tool results."""

    message: MessageBody
    tool_use_result: Any = None


class ResultEvent(_Event):
    """Final event of a query."""

    subtype: str | None = None
    result: str | None = None
    usage: dict[str, Any] | None = None
    duration_ms: int | None = None
    is_error: bool = False
    session_id: str | None = None


AgentEvent = (
    InitEvent
    | ContentBlockStartEvent
    | ContentBlockDeltaEvent
    | ContentBlockStopEvent
    | AssistantEvent
    | UserEvent
    | ResultEvent
)

_STREAM_EVENT_TYPES: dict[str, type[_Event]] = {
    "content_block_start": ContentBlockStartEvent,
    "content_block_delta": ContentBlockDeltaEvent,
    "content_block_stop": ContentBlockStopEvent,
}

_TOP_LEVEL_TYPES: dict[str, type[_Event]] = {
    "assistant": AssistantEvent,
    "user": UserEvent,
    "result": ResultEvent,
}

_delta_adapter: TypeAdapter[Any] = TypeAdapter(BlockDelta)


def parse_agent_event(raw: dict[str, Any]) -> AgentEvent | None:
    """Parse one raw agent event.

    Args:
        raw: Event dictionary as produced by the agent SDK

    Returns:
        Typed event, or None when the shape is not consumed or is malformed

    Example:
        >>> event = parse_agent_event({"type": "system", "subtype": "init", "session_id": "s1"})
        >>> assert isinstance(event, InitEvent)
    """
    event_type = raw.get("type")

    if event_type == "system":
        if raw.get("subtype") != "init":
            return None
        model_cls: type[_Event] = InitEvent
        payload = raw
    elif event_type == "stream_event":
        payload = raw.get("event") or {}
        stream_cls = _STREAM_EVENT_TYPES.get(payload.get("type", ""))
        if stream_cls is None:
            return None
        if stream_cls is ContentBlockDeltaEvent:
            try:
                _delta_adapter.validate_python(payload.get("delta") or {})
            except ValidationError:
                return None
        model_cls = stream_cls
    elif event_type in _TOP_LEVEL_TYPES:
        model_cls = _TOP_LEVEL_TYPES[event_type]
        payload = raw
    else:
        return None

    try:
        return model_cls.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as e:
        logger.debug(f"Skipping malformed {event_type} event: {e}")
        return None
