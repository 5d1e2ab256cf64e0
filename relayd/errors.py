"""Map relay errors to HTTP responses."""

from fastapi import HTTPException

from relay_library.errors import ErrorCode
from relay_library.errors import RelayError
from relay_library.errors import to_user_message

_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.SESSION_FILE_MISSING: 404,
    ErrorCode.APPROVAL_NOT_FOUND: 404,
    ErrorCode.CONVERSATION_BUSY: 409,
    ErrorCode.WATCH_CONFLICT: 409,
    ErrorCode.DUPLICATE_APPROVAL: 409,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.AGENT_STREAM_ERROR: 502,
}


def to_http_exception(error: RelayError) -> HTTPException:
    """HTTPException carrying the user-facing message and the error code."""
    return HTTPException(
        status_code=_STATUS_CODES.get(error.code, 500),
        detail={"error": to_user_message(error), "code": error.code.value},
    )
