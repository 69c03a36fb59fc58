"""Year-end rollover and carry-forward expiry.

Rollover: run on Jan 1 (or on demand) for the year that just ended. Each
(employee, leave type) pair carries ``min(available, cap)`` days into the
next year; the rest is lost. A ``RolloverRun`` row per pair makes a second
run a no-op.
Expiry: run daily; lapses carried-forward days once their expiry date passes.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leaveflow.config import get_settings
from leaveflow.models.balance import LeaveBalance
from leaveflow.models.enums import AuditAction, AuditEntityType
from leaveflow.models.leave_type import LeaveType
from leaveflow.models.rollover import RolloverRun
from leaveflow.schemas.rollover import (
    ExpireCarryForwardResponse,
    RolloverExecuteResponse,
    RolloverPreviewItem,
    RolloverPreviewResponse,
)
from leaveflow.services import ledger
from leaveflow.services.audit import model_to_audit_dict, write_audit_log
from leaveflow.services.directory import get_user_directory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = uuid.UUID(int=0)


@dataclass(frozen=True)
class RolloverPlan:
    """What happens to one prior-year balance."""

    balance: LeaveBalance
    leave_type: LeaveType
    employee_name: str
    unused: int
    carried_forward: int
    lost: int
    reason: str
    already_executed: bool


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def carry_forward_cap(leave_type: LeaveType) -> int:
    return leave_type.max_carry_forward if leave_type.allow_carry_forward else 0


def plan_carry_forward(leave_type: LeaveType, unused: int) -> tuple[int, int, str]:
    """Return (carried_forward, lost, reason) for ``unused`` days."""
    if unused <= 0:
        return 0, 0, "No unused days"
    if not leave_type.allow_carry_forward:
        return 0, unused, f"{leave_type.name} does not allow carry forward"
    cap = carry_forward_cap(leave_type)
    carried = min(unused, cap)
    if carried < unused:
        return carried, unused - carried, f"Carry forward capped at {cap} day(s)"
    return carried, 0, "All unused days carried forward"


def carry_forward_expiry(to_year: int) -> date:
    """First day of the month ``carry_forward_expiry_months`` into ``to_year``."""
    months = get_settings().carry_forward_expiry_months
    return date(to_year + months // 12, months % 12 + 1, 1)


async def _executed_pairs(
    session: AsyncSession,
    company_id: uuid.UUID,
    from_year: int,
) -> set[tuple[uuid.UUID, uuid.UUID]]:
    result = await session.execute(
        select(col(RolloverRun.employee_id), col(RolloverRun.leave_type_id)).where(
            col(RolloverRun.company_id) == company_id,
            col(RolloverRun.from_year) == from_year,
        )
    )
    return {(row[0], row[1]) for row in result.all()}


async def _build_plans(session: AsyncSession, company_id: uuid.UUID, from_year: int) -> list[RolloverPlan]:
    users = {u.id: u for u in await get_user_directory().list_users(company_id) if u.is_active}
    if not users:
        return []

    result = await session.execute(
        select(LeaveBalance, LeaveType)
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(
            col(LeaveBalance.company_id) == company_id,
            col(LeaveBalance.year) == from_year,
            col(LeaveBalance.employee_id).in_(list(users)),
        )
        .order_by(col(LeaveBalance.employee_id), col(LeaveType.code))
        .execution_options(populate_existing=True)
    )
    executed = await _executed_pairs(session, company_id, from_year)

    plans: list[RolloverPlan] = []
    for balance, leave_type in result.all():
        unused = balance.available
        carried, lost, reason = plan_carry_forward(leave_type, unused)
        plans.append(
            RolloverPlan(
                balance=balance,
                leave_type=leave_type,
                employee_name=users[balance.employee_id].name,
                unused=unused,
                carried_forward=carried,
                lost=lost,
                reason=reason,
                already_executed=(balance.employee_id, leave_type.id) in executed,
            )
        )
    return plans


async def _apply_plan(
    session: AsyncSession,
    plan: RolloverPlan,
    to_year: int,
    expires_on: date,
    actor_id: uuid.UUID,
) -> None:
    balance = plan.balance
    run = RolloverRun(
        company_id=balance.company_id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        from_year=balance.year,
        carried_forward=plan.carried_forward,
        lost=plan.lost,
        executed_by=actor_id,
    )
    session.add(run)
    await session.flush()

    key = ledger.BalanceKey(
        company_id=balance.company_id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        year=to_year,
    )
    if await ledger.get_balance(session, key) is None:
        entitled = plan.leave_type.default_days
        session.add(
            LeaveBalance(
                company_id=balance.company_id,
                employee_id=balance.employee_id,
                leave_type_id=balance.leave_type_id,
                year=to_year,
                entitled=entitled,
                available=entitled + plan.carried_forward,
                carried_forward=plan.carried_forward,
                carry_forward_expires_on=expires_on if plan.carried_forward else None,
            )
        )
        await session.flush()
    elif plan.carried_forward > 0:
        await ledger.add_carried_forward(session, key, plan.carried_forward, expires_on)

    await write_audit_log(
        session,
        company_id=balance.company_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.ROLLOVER,
        entity_id=run.id,
        action=AuditAction.ROLLOVER,
        after_json=model_to_audit_dict(run),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def preview_rollover(session: AsyncSession, company_id: uuid.UUID, from_year: int) -> RolloverPreviewResponse:
    """Report what a rollover of ``from_year`` would do. Writes nothing."""
    plans = await _build_plans(session, company_id, from_year)
    return RolloverPreviewResponse(
        from_year=from_year,
        to_year=from_year + 1,
        items=[
            RolloverPreviewItem(
                employee_id=p.balance.employee_id,
                employee_name=p.employee_name,
                leave_type_id=p.leave_type.id,
                leave_type_code=p.leave_type.code,
                unused=p.unused,
                carried_forward=p.carried_forward,
                lost=p.lost,
                reason=p.reason,
                already_executed=p.already_executed,
            )
            for p in plans
        ],
        total_unused=sum(p.unused for p in plans),
        total_carried_forward=sum(p.carried_forward for p in plans),
        total_lost=sum(p.lost for p in plans),
    )


async def execute_rollover(
    session: AsyncSession,
    company_id: uuid.UUID,
    from_year: int,
    actor_id: uuid.UUID = SYSTEM_ACTOR,
) -> RolloverExecuteResponse:
    """Roll ``from_year`` balances into the next year.

    Each pair runs in its own savepoint; a pair that was already rolled over
    (unique ``rollover_run`` row) is counted, not treated as an error.
    """
    to_year = from_year + 1
    expires_on = carry_forward_expiry(to_year)
    plans = await _build_plans(session, company_id, from_year)

    executed = already_done = failed = 0
    total_carried = 0
    for plan in plans:
        if plan.already_executed:
            already_done += 1
            continue
        try:
            async with session.begin_nested():
                await _apply_plan(session, plan, to_year, expires_on, actor_id)
        except IntegrityError:
            already_done += 1
        except Exception:
            logger.exception(
                "Rollover failed for employee=%s leave_type=%s year=%d",
                plan.balance.employee_id,
                plan.leave_type.id,
                from_year,
            )
            failed += 1
        else:
            executed += 1
            total_carried += plan.carried_forward

    await session.commit()
    logger.info(
        "Rollover %d->%d for company %s: executed=%d already_done=%d failed=%d",
        from_year,
        to_year,
        company_id,
        executed,
        already_done,
        failed,
    )
    return RolloverExecuteResponse(
        from_year=from_year,
        to_year=to_year,
        executed=executed,
        already_done=already_done,
        failed=failed,
        already_executed=executed == 0 and failed == 0 and already_done > 0,
        total_carried_forward=total_carried,
    )


async def run_carry_forward_expiry(
    session: AsyncSession,
    as_of: date,
    company_id: uuid.UUID | None = None,
    actor_id: uuid.UUID = SYSTEM_ACTOR,
) -> ExpireCarryForwardResponse:
    """Lapse expired carried-forward days and audit every touched balance."""
    expired_ids = await ledger.expire_carried_forward(session, as_of, company_id)
    if expired_ids:
        result = await session.execute(
            select(LeaveBalance).where(col(LeaveBalance.id).in_(expired_ids)).execution_options(populate_existing=True)
        )
        for balance in result.scalars().all():
            await write_audit_log(
                session,
                company_id=balance.company_id,
                actor_id=actor_id,
                entity_type=AuditEntityType.LEAVE_BALANCE,
                entity_id=balance.id,
                action=AuditAction.EXPIRE,
                after_json=model_to_audit_dict(balance),
            )
    await session.commit()
    return ExpireCarryForwardResponse(as_of=as_of, expired_balances=len(expired_ids))


async def companies_with_balances(session: AsyncSession, year: int) -> list[uuid.UUID]:
    """Tenants holding balances for ``year``; the worker iterates over these."""
    result = await session.execute(
        select(col(LeaveBalance.company_id)).where(col(LeaveBalance.year) == year).distinct()
    )
    return [row[0] for row in result.all()]
