from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leaveflow.exceptions import Conflict, NotFound
from leaveflow.models.enums import AuditAction, AuditEntityType
from leaveflow.models.leave_type import LeaveType
from leaveflow.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leaveflow.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.auth import AuthContext
    from leaveflow.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        company_id=leave_type.company_id,
        code=leave_type.code,
        name=leave_type.name,
        default_days=leave_type.default_days,
        allow_carry_forward=leave_type.allow_carry_forward,
        max_carry_forward=leave_type.max_carry_forward,
        template_id=leave_type.template_id,
        is_active=leave_type.is_active,
    )


async def _get_leave_type_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveType:
    result = await session.execute(
        select(LeaveType).where(col(LeaveType.id) == leave_type_id, col(LeaveType.company_id) == company_id)
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFound("Leave type not found")
    return leave_type


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Create a leave type; codes are unique per company."""
    leave_type = LeaveType(company_id=auth.company_id, **payload.model_dump())
    session.add(leave_type)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict(f"Leave type with code {payload.code!r} already exists") from None

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def list_leave_types(
    session: AsyncSession,
    company_id: uuid.UUID,
    include_inactive: bool = False,
) -> LeaveTypeListResponse:
    base_filter = [col(LeaveType.company_id) == company_id]
    if not include_inactive:
        base_filter.append(col(LeaveType.is_active).is_(True))

    count_result = await session.execute(select(func.count()).select_from(LeaveType).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(select(LeaveType).where(*base_filter).order_by(col(LeaveType.code)))
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(t) for t in result.scalars().all()],
        total=total,
    )


async def get_leave_type(session: AsyncSession, company_id: uuid.UUID, leave_type_id: uuid.UUID) -> LeaveTypeResponse:
    return _build_leave_type_response(await _get_leave_type_or_404(session, company_id, leave_type_id))


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Apply a partial update. Existing balances keep their entitlement."""
    leave_type = await _get_leave_type_or_404(session, auth.company_id, leave_type_id)
    before_dict = model_to_audit_dict(leave_type)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(leave_type, field, value)
    session.add(leave_type)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def deactivate_leave_type(session: AsyncSession, auth: AuthContext, leave_type_id: uuid.UUID) -> None:
    """Soft-delete: requests and balances still reference the row."""
    leave_type = await _get_leave_type_or_404(session, auth.company_id, leave_type_id)
    before_dict = model_to_audit_dict(leave_type)
    leave_type.is_active = False
    session.add(leave_type)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.DELETE,
        before_json=before_dict,
        after_json=model_to_audit_dict(leave_type),
    )
    await session.commit()
