"""Balance ledger.

Every mutation of a ``LeaveBalance`` row is a single conditional UPDATE whose
WHERE clause carries the precondition (``available >= days``, ``pending >=
days`` ...). A zero rowcount means the precondition failed; nothing is ever
read, computed in Python and written back. The database CHECK constraints on
``leave_balance`` are the last line of defence for the accounting invariant
``entitled + carried_forward == available + pending + used``.
"""

# ruff: noqa: TC003
from __future__ import annotations

import calendar
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, select, true, update
from sqlmodel import col

from leaveflow.exceptions import InsufficientBalance, LedgerInconsistency
from leaveflow.models.balance import LeaveBalance
from leaveflow.models.base import now_utc
from leaveflow.models.enums import AuditAction, AuditEntityType, LedgerBucket
from leaveflow.models.leave_type import LeaveType
from leaveflow.schemas.balance import BalanceListResponse, BalanceResponse, InitializeBalancesResponse
from leaveflow.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.auth import AuthContext
    from leaveflow.schemas.balance import InitializeBalancesPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceKey:
    """Identifies one ledger row."""

    company_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _key_filter(key: BalanceKey) -> list[Any]:
    return [
        col(LeaveBalance.company_id) == key.company_id,
        col(LeaveBalance.employee_id) == key.employee_id,
        col(LeaveBalance.leave_type_id) == key.leave_type_id,
        col(LeaveBalance.year) == key.year,
    ]


def _bump() -> dict[str, Any]:
    return {
        "version": col(LeaveBalance.version) + 1,
        "updated_at": now_utc(),
    }


async def _conditional_update(session: AsyncSession, key: BalanceKey, condition: Any, **values: Any) -> int:
    stmt = (
        update(LeaveBalance)
        .where(*_key_filter(key), condition)
        .values(**values, **_bump())
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[attr-defined]


async def _inconsistency(
    session: AsyncSession,
    key: BalanceKey,
    operation: str,
    days: int,
    bucket: str,
) -> LedgerInconsistency:
    balance = await get_balance(session, key)
    context: dict[str, Any] = {
        "operation": operation,
        "days": days,
        "bucket": bucket,
        "company_id": str(key.company_id),
        "employee_id": str(key.employee_id),
        "leave_type_id": str(key.leave_type_id),
        "year": key.year,
        "before": model_to_audit_dict(balance) if balance is not None else None,
    }
    logger.error("Ledger %s of %d day(s) from %s failed: %s", operation, days, bucket, context)
    return LedgerInconsistency(f"Cannot {operation} {days} day(s): {bucket} bucket too small", context=context)


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    return BalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        year=balance.year,
        entitled=balance.entitled,
        available=balance.available,
        pending=balance.pending,
        used=balance.used,
        carried_forward=balance.carried_forward,
        carry_forward_expires_on=balance.carry_forward_expires_on,
        updated_at=balance.updated_at,
    )


def prorated_entitlement(default_days: int, year: int, joining_date: date | None) -> int:
    """Entitlement for someone who joined on ``joining_date``, rounded up.

    Joiners from a previous year get the full amount; joiners from a later
    year get nothing for ``year``.
    """
    if joining_date is None or joining_date.year < year:
        return default_days
    if joining_date.year > year:
        return 0
    days_in_year = 366 if calendar.isleap(year) else 365
    remaining = (date(year, 12, 31) - joining_date).days + 1
    return math.ceil(remaining / days_in_year * default_days)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def reserve(session: AsyncSession, key: BalanceKey, days: int) -> None:
    """Move ``days`` from available to pending.

    Raises InsufficientBalance when the row lacks the days or does not exist.
    """
    rowcount = await _conditional_update(
        session,
        key,
        col(LeaveBalance.available) >= days,
        available=col(LeaveBalance.available) - days,
        pending=col(LeaveBalance.pending) + days,
    )
    if rowcount == 0:
        raise InsufficientBalance(f"Insufficient leave balance: {days} day(s) requested")


async def finalize(session: AsyncSession, key: BalanceKey, days: int) -> None:
    """Move ``days`` from pending to used once a request is fully approved."""
    rowcount = await _conditional_update(
        session,
        key,
        col(LeaveBalance.pending) >= days,
        pending=col(LeaveBalance.pending) - days,
        used=col(LeaveBalance.used) + days,
    )
    if rowcount == 0:
        raise await _inconsistency(session, key, "finalize", days, LedgerBucket.PENDING)


async def restore(session: AsyncSession, key: BalanceKey, days: int, from_bucket: LedgerBucket) -> None:
    """Move ``days`` back into available from the given bucket."""
    if from_bucket == LedgerBucket.PENDING:
        rowcount = await _conditional_update(
            session,
            key,
            col(LeaveBalance.pending) >= days,
            pending=col(LeaveBalance.pending) - days,
            available=col(LeaveBalance.available) + days,
        )
    else:
        rowcount = await _conditional_update(
            session,
            key,
            col(LeaveBalance.used) >= days,
            used=col(LeaveBalance.used) - days,
            available=col(LeaveBalance.available) + days,
        )
    if rowcount == 0:
        raise await _inconsistency(session, key, "restore", days, from_bucket)


async def expire_carried_forward(
    session: AsyncSession,
    as_of: date,
    company_id: uuid.UUID | None = None,
) -> list[uuid.UUID]:
    """Lapse carried-forward days whose expiry date has been reached.

    Only the unused part goes: ``min(carried_forward, available)`` leaves both
    ``carried_forward`` and ``available``. The expiry date is cleared so a
    second run is a no-op. Returns the ids of the balances touched.
    """
    lapsed = case(
        (col(LeaveBalance.carried_forward) <= col(LeaveBalance.available), col(LeaveBalance.carried_forward)),
        else_=col(LeaveBalance.available),
    )
    filters: list[Any] = [
        col(LeaveBalance.carry_forward_expires_on).is_not(None),
        col(LeaveBalance.carry_forward_expires_on) <= as_of,
    ]
    if company_id is not None:
        filters.append(col(LeaveBalance.company_id) == company_id)

    stmt = (
        update(LeaveBalance)
        .where(*filters)
        .values(
            carried_forward=col(LeaveBalance.carried_forward) - lapsed,
            available=col(LeaveBalance.available) - lapsed,
            carry_forward_expires_on=None,
            **_bump(),
        )
        .returning(col(LeaveBalance.id))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    expired = [row[0] for row in result.all()]
    logger.info("Expired carried-forward days on %d balance(s) as of %s", len(expired), as_of)
    return expired


async def add_carried_forward(session: AsyncSession, key: BalanceKey, days: int, expires_on: date) -> bool:
    """Credit carried-forward days to an existing balance row.

    Returns False when the row does not exist.
    """
    rowcount = await _conditional_update(
        session,
        key,
        true(),
        carried_forward=col(LeaveBalance.carried_forward) + days,
        available=col(LeaveBalance.available) + days,
        carry_forward_expires_on=expires_on,
    )
    return rowcount > 0


async def initialize_balances(
    session: AsyncSession,
    auth: AuthContext,
    payload: InitializeBalancesPayload,
) -> InitializeBalancesResponse:
    """Create one balance per active leave type for an employee and year.

    Existing rows are left alone. Entitlements are pro-rated for employees
    who joined during ``payload.year``.
    """
    types_result = await session.execute(
        select(LeaveType)
        .where(col(LeaveType.company_id) == auth.company_id, col(LeaveType.is_active).is_(True))
        .order_by(col(LeaveType.code))
    )
    leave_types = list(types_result.scalars().all())

    existing_result = await session.execute(
        select(col(LeaveBalance.leave_type_id)).where(
            col(LeaveBalance.company_id) == auth.company_id,
            col(LeaveBalance.employee_id) == payload.employee_id,
            col(LeaveBalance.year) == payload.year,
        )
    )
    existing = {row[0] for row in existing_result.all()}

    created: list[LeaveBalance] = []
    for leave_type in leave_types:
        if leave_type.id in existing:
            continue
        entitled = prorated_entitlement(leave_type.default_days, payload.year, payload.joining_date)
        balance = LeaveBalance(
            company_id=auth.company_id,
            employee_id=payload.employee_id,
            leave_type_id=leave_type.id,
            year=payload.year,
            entitled=entitled,
            available=entitled,
        )
        session.add(balance)
        created.append(balance)

    await session.flush()
    for balance in created:
        await write_audit_log(
            session,
            company_id=auth.company_id,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.LEAVE_BALANCE,
            entity_id=balance.id,
            action=AuditAction.INITIALIZE,
            after_json=model_to_audit_dict(balance),
        )
    await session.commit()

    logger.info(
        "Initialized %d balance(s) for employee %s year %d (%d existing)",
        len(created),
        payload.employee_id,
        payload.year,
        len(existing),
    )
    return InitializeBalancesResponse(
        created=[_build_balance_response(b) for b in created],
        skipped=len(leave_types) - len(created),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_balance(session: AsyncSession, key: BalanceKey) -> LeaveBalance | None:
    """Load a balance row, bypassing stale identity-map state."""
    result = await session.execute(
        select(LeaveBalance).where(*_key_filter(key)).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_balances(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    year: int,
) -> BalanceListResponse:
    """List an employee's balances for a year."""
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.company_id) == company_id,
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.year) == year,
        )
        .execution_options(populate_existing=True)
    )
    balances = list(result.scalars().all())
    return BalanceListResponse(
        items=[_build_balance_response(b) for b in balances],
        total=len(balances),
    )
