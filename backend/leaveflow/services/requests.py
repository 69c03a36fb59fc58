# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leaveflow.exceptions import (
    Conflict,
    InsufficientBalance,
    NotAuthorized,
    NotFound,
    RequestNotFound,
    RequestNotPending,
)
from leaveflow.models.approval import ApprovalRecord
from leaveflow.models.base import now_utc
from leaveflow.models.enums import (
    ApprovalStatus,
    AuditAction,
    AuditEntityType,
    LedgerBucket,
    NotificationType,
    RequestKind,
    RequestStatus,
)
from leaveflow.models.leave_type import LeaveType
from leaveflow.models.request import LeaveRequest
from leaveflow.schemas.request import ApprovalRecordResponse, LeaveRequestListResponse, LeaveRequestResponse
from leaveflow.services import ledger
from leaveflow.services.approval_chain import build_approval_chain
from leaveflow.services.audit import commit_audit_log, model_to_audit_dict
from leaveflow.services.directory import get_user_directory
from leaveflow.services.documents import get_document_pipeline
from leaveflow.services.duration import count_working_days
from leaveflow.services.notifications import Notification, get_notification_sink
from leaveflow.services.side_effects import SideEffects

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.auth import AuthContext
    from leaveflow.schemas.request import CreateLeaveRequestPayload, CreateWfhRequestPayload
    from leaveflow.services.approval_chain import ChainLevel
    from leaveflow.services.directory import UserInfo
    from leaveflow.services.side_effects import Effect

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_approval_response(record: ApprovalRecord) -> ApprovalRecordResponse:
    return ApprovalRecordResponse(
        id=record.id,
        level=record.level,
        approver_id=record.approver_id,
        approver_role=record.approver_role,
        status=ApprovalStatus(record.status),
        comments=record.comments,
        decided_at=record.decided_at,
    )


def build_request_response(request: LeaveRequest, approvals: list[ApprovalRecord]) -> LeaveRequestResponse:
    """Map a request model and its approval records to the response schema."""
    return LeaveRequestResponse(
        id=request.id,
        company_id=request.company_id,
        employee_id=request.employee_id,
        kind=RequestKind(request.kind),
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        selected_dates=[date.fromisoformat(d) for d in request.selected_dates] if request.selected_dates else None,
        day_count=request.day_count,
        reason=request.reason,
        substitute_id=request.substitute_id,
        status=RequestStatus(request.status),
        balance_year=request.balance_year,
        idempotency_key=request.idempotency_key,
        decided_at=request.decided_at,
        cancelled_at=request.cancelled_at,
        cancelled_by=request.cancelled_by,
        created_at=request.created_at,
        approvals=[_build_approval_response(r) for r in approvals],
    )


async def load_approvals(session: AsyncSession, request_id: uuid.UUID) -> list[ApprovalRecord]:
    """All approval records of a request, ordered by level, freshly read."""
    result = await session.execute(
        select(ApprovalRecord)
        .where(col(ApprovalRecord.request_id) == request_id)
        .order_by(col(ApprovalRecord.level))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_request_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request scoped to company, optionally locking its row."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.id) == request_id,
        col(LeaveRequest.company_id) == company_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query.execution_options(populate_existing=True))
    request = result.scalar_one_or_none()
    if request is None:
        raise RequestNotFound("Request not found")
    return request


def balance_key(request: LeaveRequest) -> ledger.BalanceKey:
    if request.leave_type_id is None or request.balance_year is None:
        msg = f"Request {request.id} has no ledger effect"
        raise ValueError(msg)
    return ledger.BalanceKey(
        company_id=request.company_id,
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        year=request.balance_year,
    )


def has_ledger_effect(request: LeaveRequest) -> bool:
    return request.kind == RequestKind.LEAVE.value


async def _get_requester(auth: AuthContext) -> UserInfo:
    user = await get_user_directory().get_user(auth.company_id, auth.user_id)
    if user is None or not user.is_active:
        raise NotAuthorized("Unknown or inactive user")
    return user


async def _get_active_leave_type(session: AsyncSession, company_id: uuid.UUID, leave_type_id: uuid.UUID) -> LeaveType:
    result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.id) == leave_type_id,
            col(LeaveType.company_id) == company_id,
            col(LeaveType.is_active).is_(True),
        )
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFound("Leave type not found")
    return leave_type


async def _find_by_idempotency_key(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    idempotency_key: str,
) -> LeaveRequest | None:
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.company_id) == company_id,
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.idempotency_key) == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def _check_overlap(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> None:
    """Raise 409 if a PENDING or APPROVED request (of either kind) overlaps the range."""
    result = await session.execute(
        select(LeaveRequest.id)
        .where(
            col(LeaveRequest.company_id) == company_id,
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_(ACTIVE_STATUSES),
            col(LeaveRequest.start_date) <= end_date,
            col(LeaveRequest.end_date) >= start_date,
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise Conflict("Request overlaps with an existing pending or approved request")


def notify_effect(
    user_id: uuid.UUID,
    kind: NotificationType,
    title: str,
    message: str,
    request_id: uuid.UUID,
) -> Effect:
    async def _send() -> None:
        await get_notification_sink().send(
            Notification(user_id=user_id, type=kind, title=title, message=message, related_entity_id=request_id)
        )

    return _send


def audit_effect(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> Effect:
    async def _write() -> None:
        await commit_audit_log(
            session,
            company_id=auth.company_id,
            actor_id=auth.user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            before_json=before_json,
            after_json=after_json,
        )

    return _write


async def _create(
    session: AsyncSession,
    auth: AuthContext,
    kind: RequestKind,
    payload: CreateLeaveRequestPayload | CreateWfhRequestPayload,
    leave_type_id: uuid.UUID | None = None,
    substitute_id: uuid.UUID | None = None,
) -> LeaveRequestResponse:
    """Shared creation flow for leave and WFH requests.

    1. Resolve requester (and the leave type for LEAVE).
    2. Idempotency short-circuit.
    3. Count working days; reject empty ranges.
    4. Reject overlaps.
    5. Build the approval chain.
    6. Persist request + approval records.
    7. Reserve (and finalize for an empty chain) on the ledger.
    8. Commit, then run side effects.
    """
    requester = await _get_requester(auth)
    leave_type = await _get_active_leave_type(session, auth.company_id, leave_type_id) if leave_type_id else None

    if payload.idempotency_key is not None:
        existing = await _find_by_idempotency_key(session, auth.company_id, auth.user_id, payload.idempotency_key)
        if existing is not None:
            return build_request_response(existing, await load_approvals(session, existing.id))

    day_count = await count_working_days(
        session, auth.company_id, payload.start_date, payload.end_date, payload.selected_dates
    )
    await _check_overlap(session, auth.company_id, auth.user_id, payload.start_date, payload.end_date)

    chain: list[ChainLevel] = await build_approval_chain(
        session, requester, leave_type, day_count, get_user_directory()
    )
    auto_approved = not chain
    now = now_utc()

    request = LeaveRequest(
        company_id=auth.company_id,
        employee_id=auth.user_id,
        kind=kind.value,
        leave_type_id=leave_type.id if leave_type else None,
        start_date=payload.start_date,
        end_date=payload.end_date,
        selected_dates=[d.isoformat() for d in sorted(payload.selected_dates)] if payload.selected_dates else None,
        day_count=day_count,
        reason=payload.reason,
        substitute_id=substitute_id,
        status=(RequestStatus.APPROVED if auto_approved else RequestStatus.PENDING).value,
        requester_role=requester.role.value,
        balance_year=date.today().year if kind == RequestKind.LEAVE else None,
        idempotency_key=payload.idempotency_key,
        decided_at=now if auto_approved else None,
    )
    session.add(request)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        if payload.idempotency_key is not None:
            existing = await _find_by_idempotency_key(session, auth.company_id, auth.user_id, payload.idempotency_key)
            if existing is not None:
                return build_request_response(existing, await load_approvals(session, existing.id))
        raise Conflict("Duplicate request") from None

    records = [
        ApprovalRecord(
            request_id=request.id,
            level=level.level,
            approver_id=level.approver_id,
            approver_role=level.role.value,
        )
        for level in chain
    ]
    session.add_all(records)
    await session.flush()

    if has_ledger_effect(request):
        key = balance_key(request)
        try:
            await ledger.reserve(session, key, day_count)
        except InsufficientBalance:
            await session.rollback()
            raise
        if auto_approved:
            await ledger.finalize(session, key, day_count)

    await session.commit()
    logger.info(
        "Created %s request %s for %s: %d day(s), %d approval level(s)%s",
        kind,
        request.id,
        auth.user_id,
        day_count,
        len(records),
        " (auto-approved)" if auto_approved else "",
    )

    effects = SideEffects()
    effects.add(
        "audit",
        audit_effect(
            session,
            auth,
            AuditEntityType.LEAVE_REQUEST,
            request.id,
            AuditAction.CREATE,
            after_json=model_to_audit_dict(request),
        ),
    )
    if records:
        effects.add(
            "notify-first-approver",
            notify_effect(
                records[0].approver_id,
                NotificationType.APPROVAL_REQUIRED,
                f"New {kind.value.lower()} request awaiting approval",
                f"{requester.name} requested {day_count} day(s) from {payload.start_date} to {payload.end_date}.",
                request.id,
            ),
        )
    else:
        effects.add(
            "notify-requester",
            notify_effect(
                requester.id,
                NotificationType.REQUEST_APPROVED,
                "Request approved",
                "Your request required no approvers and was approved automatically.",
                request.id,
            ),
        )
    if leave_type is not None and leave_type.template_id:
        template_id = leave_type.template_id
        request_id = request.id

        async def _generate_document() -> None:
            await get_document_pipeline().generate_document(request_id, template_id)

        effects.add("generate-document", _generate_document)
    response = build_request_response(request, records)
    await effects.run()
    return response


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Submit a leave request: build its chain and reserve the days."""
    return await _create(
        session,
        auth,
        RequestKind.LEAVE,
        payload,
        leave_type_id=payload.leave_type_id,
        substitute_id=payload.substitute_id,
    )


async def create_wfh_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateWfhRequestPayload,
) -> LeaveRequestResponse:
    """Submit a work-from-home request. Same lifecycle, no ledger effect."""
    return await _create(session, auth, RequestKind.WFH, payload)


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Cancel a PENDING request and return its reserved days."""
    request = await get_request_or_404(session, auth.company_id, request_id, for_update=True)

    if request.employee_id != auth.user_id and not auth.is_admin:
        raise NotAuthorized("Only the requester or an administrator can cancel this request")
    if request.status != RequestStatus.PENDING.value:
        raise RequestNotPending("Only pending requests can be cancelled")

    before_dict = model_to_audit_dict(request)
    now = now_utc()
    result = await session.execute(
        update(LeaveRequest)
        .where(col(LeaveRequest.id) == request.id, col(LeaveRequest.status) == RequestStatus.PENDING.value)
        .values(status=RequestStatus.CANCELLED.value, cancelled_at=now, cancelled_by=auth.user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        raise RequestNotPending("Only pending requests can be cancelled")

    if has_ledger_effect(request):
        await ledger.restore(session, balance_key(request), request.day_count, LedgerBucket.PENDING)

    await session.commit()
    await session.refresh(request)
    approvals = await load_approvals(session, request.id)
    logger.info("Request %s cancelled by %s", request.id, auth.user_id)

    effects = SideEffects()
    effects.add(
        "audit",
        audit_effect(
            session,
            auth,
            AuditEntityType.LEAVE_REQUEST,
            request.id,
            AuditAction.CANCEL,
            before_json=before_dict,
            after_json=model_to_audit_dict(request),
        ),
    )
    for record in approvals:
        if record.status == ApprovalStatus.PENDING.value:
            effects.add(
                f"notify-approver-{record.level}",
                notify_effect(
                    record.approver_id,
                    NotificationType.REQUEST_CANCELLED,
                    "Request cancelled",
                    "A request awaiting your approval was cancelled.",
                    request.id,
                ),
            )
    response = build_request_response(request, approvals)
    await effects.run()
    return response


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Visible to the requester, any approver on the chain, and administrators."""
    request = await get_request_or_404(session, auth.company_id, request_id)
    approvals = await load_approvals(session, request.id)
    if (
        request.employee_id != auth.user_id
        and not auth.is_admin
        and all(record.approver_id != auth.user_id for record in approvals)
    ):
        raise NotAuthorized("Not allowed to view this request")
    return build_request_response(request, approvals)


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    *,
    kind: RequestKind | None = None,
    status: RequestStatus | None = None,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List the actor's own requests."""
    base_filter: list[Any] = [
        col(LeaveRequest.company_id) == auth.company_id,
        col(LeaveRequest.employee_id) == auth.user_id,
    ]
    if kind is not None:
        base_filter.append(col(LeaveRequest.kind) == kind.value)
    if status is not None:
        base_filter.append(col(LeaveRequest.status) == status.value)
    if year is not None:
        base_filter.extend(
            [col(LeaveRequest.start_date) >= date(year, 1, 1), col(LeaveRequest.start_date) <= date(year, 12, 31)]
        )

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filter)
        .order_by(col(LeaveRequest.start_date).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    items = [build_request_response(r, await load_approvals(session, r.id)) for r in requests]
    return LeaveRequestListResponse(items=items, total=total)
