"""Approval executor.

``decide`` is the single entry point for approve/deny. One transaction:
lock the request row, pick the actor's record, flip it conditionally,
transition the request and move ledger days. Side effects run after the
commit.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlmodel import col

from leaveflow.exceptions import (
    AlreadyDecided,
    AppError,
    NotAuthorized,
    RequestNotPending,
    SelfApprovalForbidden,
    ValidationFailed,
)
from leaveflow.models.approval import ApprovalRecord
from leaveflow.models.base import now_utc
from leaveflow.models.enums import (
    PEER_EXECUTIVE_ROLE,
    ApprovalStatus,
    AuditAction,
    AuditEntityType,
    Decision,
    LedgerBucket,
    NotificationType,
    RequestStatus,
    UserRole,
)
from leaveflow.models.request import LeaveRequest
from leaveflow.schemas.request import DecisionResponse, LeaveRequestListResponse
from leaveflow.services import ledger
from leaveflow.services.audit import model_to_audit_dict
from leaveflow.services.directory import get_user_directory
from leaveflow.services.documents import get_document_pipeline
from leaveflow.services.requests import (
    audit_effect,
    balance_key,
    build_request_response,
    get_request_or_404,
    has_ledger_effect,
    load_approvals,
    notify_effect,
)
from leaveflow.services.side_effects import SideEffects

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.auth import AuthContext
    from leaveflow.services.side_effects import Effect

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _is_peer_executive(auth: AuthContext, request: LeaveRequest) -> bool:
    """A peer executive may step into another executive's request."""
    if request.requester_role != UserRole.EXECUTIVE.value or auth.user_id == request.employee_id:
        return False
    actor = await get_user_directory().get_user(auth.company_id, auth.user_id)
    return actor is not None and actor.is_active and actor.role == UserRole.EXECUTIVE


async def _late_bind(
    session: AsyncSession,
    request: LeaveRequest,
    records: list[ApprovalRecord],
    actor_id: uuid.UUID,
) -> ApprovalRecord:
    record = ApprovalRecord(
        request_id=request.id,
        level=max((r.level for r in records), default=0) + 1,
        approver_id=actor_id,
        approver_role=PEER_EXECUTIVE_ROLE,
    )
    session.add(record)
    await session.flush()
    logger.info("Late-bound peer executive %s at level %d on request %s", actor_id, record.level, request.id)
    return record


async def _flip_record(
    session: AsyncSession,
    record: ApprovalRecord,
    decision: Decision,
    comment: str | None,
    signature: str | None,
) -> None:
    new_status = ApprovalStatus.APPROVED if decision == Decision.APPROVE else ApprovalStatus.REJECTED
    result = await session.execute(
        update(ApprovalRecord)
        .where(col(ApprovalRecord.id) == record.id, col(ApprovalRecord.status) == ApprovalStatus.PENDING.value)
        .values(status=new_status.value, comments=comment, signature=signature, decided_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        raise AlreadyDecided("This approval has already been decided")


async def _transition_request(
    session: AsyncSession,
    request: LeaveRequest,
    from_status: str,
    to_status: RequestStatus,
) -> None:
    result = await session.execute(
        update(LeaveRequest)
        .where(col(LeaveRequest.id) == request.id, col(LeaveRequest.status) == from_status)
        .values(status=to_status.value, decided_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        raise RequestNotPending("Request is no longer pending")


async def _all_approved(session: AsyncSession, request_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(func.count())
        .select_from(ApprovalRecord)
        .where(
            col(ApprovalRecord.request_id) == request_id,
            col(ApprovalRecord.status) != ApprovalStatus.APPROVED.value,
        )
    )
    return result.scalar_one() == 0


def _sign_document(request_id: uuid.UUID, actor_id: uuid.UUID, role: str, signature: str | None) -> Effect:
    async def _sign() -> None:
        pipeline = get_document_pipeline()
        document_id = await pipeline.find_document(request_id)
        if document_id is None:
            return
        await pipeline.add_signature(document_id, actor_id, role, signature or f"APPROVED_BY_{role.upper()}")

    return _sign


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def decide(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    decision: Decision,
    comment: str | None = None,
    signature: str | None = None,
    *,
    allow_late_binding: bool = False,
) -> DecisionResponse:
    """Record one approver's decision on a request.

    Flow:
    1. Lock the request row.
    2. Reject self-decisions.
    3. Find the actor's lowest pending record (or late-bind a peer executive).
    4. Check the request status allows this decision.
    5. Flip the record (conditional on PENDING).
    6. REJECT: request -> REJECTED, restore days.
       APPROVE: if every record is approved, request -> APPROVED, finalize days.
    7. Commit, then side effects.

    Failures before the commit leave every row untouched.
    """
    request = await get_request_or_404(session, auth.company_id, request_id, for_update=True)

    if request.employee_id == auth.user_id:
        raise SelfApprovalForbidden("You cannot decide on your own request")

    records = await load_approvals(session, request.id)
    mine = [r for r in records if r.approver_id == auth.user_id]
    target = next((r for r in mine if r.status == ApprovalStatus.PENDING.value), None)

    late_bound = False
    if target is None:
        if mine:
            raise AlreadyDecided("You have already decided on this request")
        if not (allow_late_binding and await _is_peer_executive(auth, request)):
            raise NotAuthorized("You are not an approver of this request")
        late_bound = True

    prior_status = request.status
    reversal = prior_status == RequestStatus.APPROVED.value and late_bound and decision == Decision.REJECT
    if prior_status != RequestStatus.PENDING.value and not reversal:
        raise RequestNotPending(f"Request is {prior_status.lower()}")

    before_dict = model_to_audit_dict(request)
    all_approved = False
    try:
        if target is None:
            target = await _late_bind(session, request, records, auth.user_id)
            records.append(target)

        await _flip_record(session, target, decision, comment, signature)

        if decision == Decision.REJECT:
            await _transition_request(session, request, prior_status, RequestStatus.REJECTED)
            if has_ledger_effect(request):
                bucket = LedgerBucket.USED if reversal else LedgerBucket.PENDING
                await ledger.restore(session, balance_key(request), request.day_count, bucket)
        else:
            all_approved = await _all_approved(session, request.id)
            if all_approved:
                await _transition_request(session, request, RequestStatus.PENDING.value, RequestStatus.APPROVED)
                if has_ledger_effect(request):
                    await ledger.finalize(session, balance_key(request), request.day_count)
    except AppError:
        await session.rollback()
        raise

    await session.commit()
    await session.refresh(request)
    records = await load_approvals(session, request.id)
    logger.info(
        "Request %s: %s by %s at level %d%s",
        request.id,
        decision,
        auth.user_id,
        target.level,
        " (reversal)" if reversal else "",
    )

    effects = SideEffects()
    effects.add(
        "audit",
        audit_effect(
            session,
            auth,
            AuditEntityType.LEAVE_REQUEST,
            request.id,
            AuditAction.APPROVE if decision == Decision.APPROVE else AuditAction.REJECT,
            before_json=before_dict,
            after_json=model_to_audit_dict(request),
        ),
    )
    _queue_notifications(effects, request, records, decision, all_approved)
    if decision == Decision.APPROVE:
        effects.add(
            "sign-document",
            _sign_document(request.id, auth.user_id, target.approver_role or "APPROVER", signature),
        )
    response = DecisionResponse(request=build_request_response(request, records), all_approved=all_approved)
    await effects.run()
    return response


def _queue_notifications(
    effects: SideEffects,
    request: LeaveRequest,
    records: list[ApprovalRecord],
    decision: Decision,
    all_approved: bool,
) -> None:
    if decision == Decision.REJECT:
        effects.add(
            "notify-requester",
            notify_effect(
                request.employee_id,
                NotificationType.REQUEST_REJECTED,
                "Request rejected",
                "Your request was rejected.",
                request.id,
            ),
        )
    elif all_approved:
        effects.add(
            "notify-requester",
            notify_effect(
                request.employee_id,
                NotificationType.REQUEST_APPROVED,
                "Request approved",
                "Your request was approved by every approver.",
                request.id,
            ),
        )
    else:
        next_pending = next((r for r in records if r.status == ApprovalStatus.PENDING.value), None)
        if next_pending is not None:
            effects.add(
                "notify-next-approver",
                notify_effect(
                    next_pending.approver_id,
                    NotificationType.APPROVAL_REQUIRED,
                    "Request awaiting your approval",
                    f"A request of {request.day_count} day(s) is waiting for your decision.",
                    request.id,
                ),
            )


async def deny(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    comment: str | None,
    *,
    allow_late_binding: bool = False,
) -> DecisionResponse:
    """Reject with a mandatory, non-blank comment."""
    if comment is None or not comment.strip():
        raise ValidationFailed("A comment is required when denying a request")
    return await decide(
        session,
        auth,
        request_id,
        Decision.REJECT,
        comment.strip(),
        allow_late_binding=allow_late_binding,
    )


async def list_pending_approvals(
    session: AsyncSession,
    auth: AuthContext,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """PENDING requests on which the actor holds a PENDING record."""
    awaiting_actor = select(col(ApprovalRecord.request_id)).where(
        col(ApprovalRecord.approver_id) == auth.user_id,
        col(ApprovalRecord.status) == ApprovalStatus.PENDING.value,
    )
    base_filter: list[Any] = [
        col(LeaveRequest.company_id) == auth.company_id,
        col(LeaveRequest.status) == RequestStatus.PENDING.value,
        col(LeaveRequest.id).in_(awaiting_actor),
    ]

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filter)
        .order_by(col(LeaveRequest.created_at))
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())
    items = [build_request_response(r, await load_approvals(session, r.id)) for r in requests]
    return LeaveRequestListResponse(items=items, total=total)
