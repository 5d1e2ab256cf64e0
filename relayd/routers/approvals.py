"""Approval endpoints.

The agent side registers an approval and long-polls for its answer; the chat
side resolves or aborts it by id.
"""

import logging
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from relay_library.concurrency import ApprovalContext
from relay_library.concurrency import ApprovalKind
from relay_library.concurrency import PendingApproval
from relay_library.errors import ErrorCode
from relay_library.errors import RelayError

from ..dependencies import get_relay_state
from ..errors import to_http_exception
from ..models import ApprovalRequest
from ..models import ApprovalResolution
from ..models import PendingApprovalInfo
from ..models import ResolveRequest
from ..state import RelayState
from ..state import describe_resolution

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/approvals", tags=["approvals"])


def _not_pending(kind: ApprovalKind, approval_id: str) -> RelayError:
    return RelayError(f"No pending {kind.value} approval {approval_id}", ErrorCode.APPROVAL_NOT_FOUND)


def _info(entry: PendingApproval) -> PendingApprovalInfo:
    return PendingApprovalInfo(
        approval_id=entry.id,
        kind=entry.kind,
        conversation_key=entry.context.conversation_key,
        channel_id=entry.context.channel_id,
        thread_ts=entry.context.thread_ts,
        message_ts=entry.context.message_ts,
        payload=entry.payload,
        created_at=entry.created_at,
    )


@router.get("/")
async def list_approvals(
    state: Annotated[RelayState, Depends(get_relay_state)],
    conversation_key: Annotated[str | None, Query(alias="conversationKey")] = None,
) -> list[PendingApprovalInfo]:
    """List pending approvals, optionally for one conversation."""
    return [_info(entry) for registry in state.approvals.all() for entry in registry.list_pending(conversation_key)]


@router.post("/{kind}")
async def request_approval(
    kind: ApprovalKind,
    request: ApprovalRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> ApprovalResolution:
    """Register an approval and wait for its answer.

    The response arrives when the approval is resolved, aborted or expires.

    Raises:
        HTTPException: 409 if the approval id is already pending
    """
    registry = state.approvals.for_kind(kind)
    context = ApprovalContext(
        conversation_key=request.conversation_key,
        channel_id=request.channel_id,
        thread_ts=request.thread_ts,
        message_ts=request.message_ts,
    )
    try:
        registry.register(request.approval_id, context, request.payload)
    except RelayError as e:
        raise to_http_exception(e) from e

    timeout = request.timeout_seconds or state.settings.approval_timeout_seconds
    value = await registry.wait(request.approval_id, timeout=timeout)
    return ApprovalResolution(approval_id=request.approval_id, kind=kind, **describe_resolution(value))


@router.post("/{kind}/{approval_id}/resolve")
async def resolve_approval(
    kind: ApprovalKind,
    approval_id: str,
    request: ResolveRequest,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> ApprovalResolution:
    """Answer a pending approval.

    Raises:
        HTTPException: 404 if it was already answered, aborted or expired
    """
    if not state.approvals.for_kind(kind).resolve(approval_id, request.value):
        raise to_http_exception(_not_pending(kind, approval_id))
    return ApprovalResolution(approval_id=approval_id, kind=kind, value=request.value)


@router.post("/{kind}/{approval_id}/abort")
async def abort_approval(
    kind: ApprovalKind,
    approval_id: str,
    state: Annotated[RelayState, Depends(get_relay_state)],
) -> ApprovalResolution:
    """Abort a pending approval; the waiting side receives the aborted signal."""
    if not state.approvals.for_kind(kind).abort(approval_id):
        raise to_http_exception(_not_pending(kind, approval_id))
    return ApprovalResolution(approval_id=approval_id, kind=kind, signal="aborted")
