"""
Unit tests for relay errors and stream failure classification.
"""

import pytest

from relay_library.errors import PLAN_EXIT_TOOL
from relay_library.errors import ConversationBusyError
from relay_library.errors import ErrorCode
from relay_library.errors import SessionFileMissingError
from relay_library.errors import StreamFailureKind
from relay_library.errors import WatchConflictError
from relay_library.errors import classify_stream_error
from relay_library.errors import to_user_message


@pytest.mark.unit
class TestClassifyStreamError:
    """Test classify_stream_error."""

    def test_error_after_plan_exit_is_expected(self) -> None:
        """Test an error right after the plan-exit tool is a plan mode exit."""
        failure = classify_stream_error(RuntimeError("process exited with code 1"), PLAN_EXIT_TOOL)

        assert failure.kind == StreamFailureKind.PLAN_MODE_EXIT
        assert failure.is_expected

    def test_error_after_other_tool_is_failure(self) -> None:
        """Test the same error after any other tool is a real failure."""
        failure = classify_stream_error(RuntimeError("process exited with code 1"), "Read")

        assert failure.kind == StreamFailureKind.FAILURE
        assert not failure.is_expected
        assert failure.message == "process exited with code 1"

    def test_error_text_is_not_consulted(self) -> None:
        """Test a plan-sounding message without the plan-exit tool is still a failure."""
        failure = classify_stream_error(RuntimeError("ExitPlanMode"), None)

        assert failure.kind == StreamFailureKind.FAILURE

    def test_abort_wins(self) -> None:
        """Test a user abort is classified as aborted."""
        failure = classify_stream_error(RuntimeError("interrupted"), PLAN_EXIT_TOOL, aborted=True)

        assert failure.kind == StreamFailureKind.ABORTED
        assert failure.is_expected

    def test_empty_message_uses_type_name(self) -> None:
        """Test errors without a message report their type."""
        assert classify_stream_error(ValueError(), None).message == "ValueError"


@pytest.mark.unit
class TestUserMessages:
    """Test to_user_message."""

    def test_canned_messages(self) -> None:
        """Test relay errors map to short canned messages."""
        assert "busy" in to_user_message(ConversationBusyError("C1"))
        assert to_user_message(SessionFileMissingError("s1", "/p/s1.jsonl")).startswith("Session file not found")

    def test_watch_conflict_names_command(self) -> None:
        """Test the watch conflict message names the rejected command."""
        message = to_user_message(WatchConflictError("C1", "ff"))

        assert message == "Error: Cannot run ff while watching. Stop watching first."

    def test_generic_exception(self) -> None:
        """Test other exceptions are prefixed without a traceback."""
        assert to_user_message(OSError("disk full")) == "Error: disk full"

    def test_codes_and_recoverability(self) -> None:
        """Test error codes and the recoverable flag."""
        busy = ConversationBusyError("C1")
        missing = SessionFileMissingError("s1")

        assert busy.code == ErrorCode.CONVERSATION_BUSY
        assert busy.recoverable is True
        assert missing.code == ErrorCode.SESSION_FILE_MISSING
        assert missing.recoverable is False
