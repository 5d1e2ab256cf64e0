"""Error taxonomy for the relay.

Recoverable conditions (malformed log lines, missing log files, unknown
approval ids) are logged and skipped by the components that meet them.
Only errors that make the current top-level operation meaningless are
raised as ``RelayError``.
"""

from dataclasses import dataclass
from enum import Enum

PLAN_EXIT_TOOL = "ExitPlanMode"


class ErrorCode(str, Enum):
    """Categories of relay errors."""

    SESSION_FILE_MISSING = "session_file_missing"
    CONVERSATION_BUSY = "conversation_busy"
    WATCH_CONFLICT = "watch_conflict"
    APPROVAL_NOT_FOUND = "approval_not_found"
    DUPLICATE_APPROVAL = "duplicate_approval"
    AGENT_STREAM_ERROR = "agent_stream_error"
    INVALID_INPUT = "invalid_input"


class RelayError(Exception):
    """Base error carrying a code and whether the caller may retry."""

    def __init__(self, message: str, code: ErrorCode, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.recoverable = recoverable


class SessionFileMissingError(RelayError):
    """Raised when an operation strictly requires a session log that does not exist."""

    def __init__(self, session_id: str, path: str | None = None) -> None:
        detail = f" at {path}" if path else ""
        super().__init__(f"Session file for {session_id} not found{detail}", ErrorCode.SESSION_FILE_MISSING)
        self.session_id = session_id
        self.path = path


class ConversationBusyError(RelayError):
    """Raised when a conversation already has work in flight."""

    def __init__(self, conversation_key: str) -> None:
        super().__init__(f"Conversation {conversation_key} is busy", ErrorCode.CONVERSATION_BUSY, recoverable=True)
        self.conversation_key = conversation_key


class WatchConflictError(RelayError):
    """Raised when a command cannot run while the conversation is being watched."""

    def __init__(self, conversation_key: str, command: str) -> None:
        super().__init__(
            f"Cannot run {command} while watching. Stop watching first.",
            ErrorCode.WATCH_CONFLICT,
            recoverable=True,
        )
        self.conversation_key = conversation_key
        self.command = command


class DuplicateApprovalError(RelayError):
    """Raised when registering an approval id that is still pending."""

    def __init__(self, approval_id: str) -> None:
        super().__init__(f"Approval {approval_id} is already pending", ErrorCode.DUPLICATE_APPROVAL)
        self.approval_id = approval_id


class AgentStreamError(RelayError):
    """Raised for a genuine failure of the agent event stream."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.AGENT_STREAM_ERROR)


_USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SESSION_FILE_MISSING: "Session file not found. The session may not have started yet.",
    ErrorCode.CONVERSATION_BUSY: "I'm busy with the current request. Please wait or abort it first.",
    ErrorCode.APPROVAL_NOT_FOUND: "That request is no longer pending.",
    ErrorCode.DUPLICATE_APPROVAL: "That request is already pending.",
    ErrorCode.INVALID_INPUT: "Invalid input.",
}


def to_user_message(error: BaseException) -> str:
    """Convert any exception into a short user-facing message.

    Never exposes stack traces. Relay errors with a canned message use it;
    everything else reports the underlying message.

    Args:
        error: Exception to describe

    Returns:
        User-facing message
    """
    if isinstance(error, RelayError):
        canned = _USER_MESSAGES.get(error.code)
        if error.code == ErrorCode.WATCH_CONFLICT or canned is None:
            return f"Error: {error}"
        return canned
    message = str(error) or type(error).__name__
    return f"Error: {message}"


class StreamFailureKind(str, Enum):
    """How an agent stream ending in an error should be treated."""

    PLAN_MODE_EXIT = "plan_mode_exit"
    ABORTED = "aborted"
    FAILURE = "failure"


@dataclass(frozen=True)
class StreamFailure:
    kind: StreamFailureKind
    message: str

    @property
    def is_expected(self) -> bool:
        return self.kind != StreamFailureKind.FAILURE


def classify_stream_error(
    error: BaseException,
    last_completed_tool: str | None,
    aborted: bool = False,
) -> StreamFailure:
    """Classify an error that ended the agent event stream.

    The agent process exits with an error right after the plan-exit tool
    completes. That exit is recognised by the most recently completed tool,
    never by the error text. This is a recency heuristic: a genuine crash
    that happens to follow a plan exit is misclassified.

    Args:
        error: Exception raised by the stream
        last_completed_tool: Name of the most recently completed tool, if any
        aborted: Whether the user interrupted the query

    Returns:
        Classification with the message to surface
    """
    message = str(error) or type(error).__name__
    if aborted:
        return StreamFailure(StreamFailureKind.ABORTED, message)
    if last_completed_tool == PLAN_EXIT_TOOL:
        return StreamFailure(StreamFailureKind.PLAN_MODE_EXIT, message)
    return StreamFailure(StreamFailureKind.FAILURE, message)
