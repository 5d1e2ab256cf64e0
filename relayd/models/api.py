"""Request and response models for the relayd API."""

from datetime import datetime
from typing import Any

from pydantic import Field

from relay_library.concurrency import ApprovalKind
from relay_library.models.base import CamelCaseModel


class ErrorResponse(CamelCaseModel):
    error: str = Field(..., description="Error message")
    code: str | None = Field(default=None, description="Relay error code")


class WatchStatus(CamelCaseModel):
    session_id: str
    session_path: str
    offset: int
    update_rate_seconds: float
    started_at: datetime


class ConversationStatus(CamelCaseModel):
    conversation_key: str
    busy: bool
    watching: bool
    watch: WatchStatus | None = None
    pending_approvals: int = 0
    last_sync_offset: int | None = None


class FastForwardRequest(CamelCaseModel):
    session_id: str = Field(description="Agent session to replay")
    working_dir: str = Field(description="Working directory the session ran in")
    from_start: bool = Field(default=False, description="Ignore the stored offset and replay the whole log")


class FastForwardResponse(CamelCaseModel):
    conversation_key: str
    session_id: str
    since_offset: int
    started: bool = True


class WatchRequest(CamelCaseModel):
    session_id: str
    working_dir: str
    update_rate_seconds: float | None = Field(default=None, ge=0.5, le=60.0)


class WatchRateRequest(CamelCaseModel):
    update_rate_seconds: float = Field(ge=0.5, le=60.0, description="Seconds between polls of the session log")


class CommandCheckRequest(CamelCaseModel):
    command: str


class CommandCheckResponse(CamelCaseModel):
    allowed: bool
    message: str | None = None


class AbortResponse(CamelCaseModel):
    query_aborted: bool = False
    sync_aborting: bool = False


class QueryRequest(CamelCaseModel):
    """A complete agent event stream to run through the conversation runner."""

    events: list[dict[str, Any]] = Field(default_factory=list)
    command: str = "query"
    exit_error: str | None = Field(default=None, description="Error the agent process ended with after the events")
    strict: bool = Field(default=False, description="Answer 502 when the stream failed outright")


class QueryResponse(CamelCaseModel):
    status: str
    result_text: str | None = None
    error_message: str | None = None
    session_id: str | None = None
    model: str | None = None
    duration_ms: int | None = None
    plan_file_path: str | None = None
    activity_text: str
    entries: list[dict[str, Any]] = Field(default_factory=list)


class ApprovalRequest(CamelCaseModel):
    """Agent-side registration of an approval, answered when resolved."""

    approval_id: str
    conversation_key: str
    channel_id: str | None = None
    thread_ts: str | None = None
    message_ts: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float | None = Field(default=None, gt=0)


class ResolveRequest(CamelCaseModel):
    value: Any = None


class ApprovalResolution(CamelCaseModel):
    approval_id: str
    kind: ApprovalKind
    signal: str | None = Field(default=None, description="aborted or expired when not a real answer")
    value: Any = None


class PendingApprovalInfo(CamelCaseModel):
    approval_id: str
    kind: ApprovalKind
    conversation_key: str
    channel_id: str | None = None
    thread_ts: str | None = None
    message_ts: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class SessionActivityResponse(CamelCaseModel):
    session_id: str
    text: str
    entries: list[dict[str, Any]] = Field(default_factory=list)
    results: dict[str, dict[str, Any]] = Field(default_factory=dict)
    plan_file_path: str | None = None
