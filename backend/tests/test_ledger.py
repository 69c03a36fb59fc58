"""Tests for the balance ledger: conditional moves between buckets, expiry,
initialization and the accounting invariant.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.exc import IntegrityError

from leaveflow.exceptions import InsufficientBalance, LedgerInconsistency
from leaveflow.models import LeaveBalance, LedgerBucket, UserRole
from leaveflow.schemas.auth import AuthContext
from leaveflow.schemas.balance import InitializeBalancesPayload
from leaveflow.services import ledger
from leaveflow.services.ledger import BalanceKey, prorated_entitlement

if TYPE_CHECKING:
    from conftest import Org
    from sqlalchemy.ext.asyncio import AsyncSession


async def _counters(session: AsyncSession, key: BalanceKey) -> dict[str, int]:
    balance = await ledger.get_balance(session, key)
    assert balance is not None
    counters = {
        "entitled": balance.entitled,
        "available": balance.available,
        "pending": balance.pending,
        "used": balance.used,
        "carried_forward": balance.carried_forward,
    }
    assert counters["entitled"] + counters["carried_forward"] == (
        counters["available"] + counters["pending"] + counters["used"]
    )
    return counters


# ---------------------------------------------------------------------------
# reserve / finalize / restore
# ---------------------------------------------------------------------------


async def test_reserve_moves_available_to_pending(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    await ledger.reserve(db_session, employee_balance, 3)
    await db_session.commit()

    counters = await _counters(db_session, employee_balance)
    assert counters["available"] == 27
    assert counters["pending"] == 3


async def test_reserve_insufficient_leaves_row_untouched(
    db_session: AsyncSession, employee_balance: BalanceKey
) -> None:
    with pytest.raises(InsufficientBalance):
        await ledger.reserve(db_session, employee_balance, 31)

    counters = await _counters(db_session, employee_balance)
    assert counters["available"] == 30
    assert counters["pending"] == 0


async def test_reserve_exact_available_succeeds(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    await ledger.reserve(db_session, employee_balance, 30)
    counters = await _counters(db_session, employee_balance)
    assert counters["available"] == 0
    assert counters["pending"] == 30


async def test_reserve_without_balance_row_is_insufficient(db_session: AsyncSession, org: Org) -> None:
    key = BalanceKey(org.company_id, org.employee.id, uuid.uuid4(), date.today().year)
    with pytest.raises(InsufficientBalance):
        await ledger.reserve(db_session, key, 1)


async def test_finalize_moves_pending_to_used(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    await ledger.reserve(db_session, employee_balance, 3)
    await ledger.finalize(db_session, employee_balance, 3)
    await db_session.commit()

    counters = await _counters(db_session, employee_balance)
    assert counters == {"entitled": 30, "available": 27, "pending": 0, "used": 3, "carried_forward": 0}


async def test_finalize_more_than_pending_is_inconsistency(
    db_session: AsyncSession, employee_balance: BalanceKey
) -> None:
    await ledger.reserve(db_session, employee_balance, 2)

    with pytest.raises(LedgerInconsistency) as exc_info:
        await ledger.finalize(db_session, employee_balance, 5)

    assert exc_info.value.context["operation"] == "finalize"
    assert exc_info.value.context["before"]["pending"] == 2
    counters = await _counters(db_session, employee_balance)
    assert counters["pending"] == 2
    assert counters["used"] == 0


async def test_reserve_then_restore_round_trips(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    before = await _counters(db_session, employee_balance)

    await ledger.reserve(db_session, employee_balance, 4)
    await ledger.restore(db_session, employee_balance, 4, LedgerBucket.PENDING)
    await db_session.commit()

    assert await _counters(db_session, employee_balance) == before


async def test_restore_from_used(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    await ledger.reserve(db_session, employee_balance, 3)
    await ledger.finalize(db_session, employee_balance, 3)
    await ledger.restore(db_session, employee_balance, 3, LedgerBucket.USED)

    counters = await _counters(db_session, employee_balance)
    assert counters["available"] == 30
    assert counters["used"] == 0


async def test_restore_from_empty_bucket_is_inconsistency(
    db_session: AsyncSession, employee_balance: BalanceKey
) -> None:
    with pytest.raises(LedgerInconsistency):
        await ledger.restore(db_session, employee_balance, 1, LedgerBucket.USED)


async def test_mutations_bump_version(db_session: AsyncSession, employee_balance: BalanceKey) -> None:
    await ledger.reserve(db_session, employee_balance, 1)
    await ledger.finalize(db_session, employee_balance, 1)

    balance = await ledger.get_balance(db_session, employee_balance)
    assert balance is not None
    assert balance.version == 3


async def test_check_constraint_rejects_unbalanced_row(
    db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    db_session.add(
        LeaveBalance(
            company_id=org.company_id,
            employee_id=org.manager.id,
            leave_type_id=annual_leave,
            year=2030,
            entitled=10,
            available=12,
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


# ---------------------------------------------------------------------------
# Carry-forward expiry
# ---------------------------------------------------------------------------


async def test_expire_removes_unused_carried_forward(
    db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    db_session.add(
        LeaveBalance(
            company_id=org.company_id,
            employee_id=org.employee.id,
            leave_type_id=annual_leave,
            year=2031,
            entitled=30,
            carried_forward=5,
            available=35,
            carry_forward_expires_on=date(2031, 4, 1),
        )
    )
    await db_session.commit()
    key = BalanceKey(org.company_id, org.employee.id, annual_leave, 2031)

    assert await ledger.expire_carried_forward(db_session, date(2031, 3, 31)) == []

    expired = await ledger.expire_carried_forward(db_session, date(2031, 4, 1))
    await db_session.commit()

    assert len(expired) == 1
    counters = await _counters(db_session, key)
    assert counters["carried_forward"] == 0
    assert counters["available"] == 30


async def test_expire_keeps_carried_days_already_spent(
    db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    db_session.add(
        LeaveBalance(
            company_id=org.company_id,
            employee_id=org.employee.id,
            leave_type_id=annual_leave,
            year=2032,
            entitled=2,
            carried_forward=5,
            available=3,
            used=4,
            carry_forward_expires_on=date(2032, 4, 1),
        )
    )
    await db_session.commit()
    key = BalanceKey(org.company_id, org.employee.id, annual_leave, 2032)

    await ledger.expire_carried_forward(db_session, date(2032, 5, 1))

    counters = await _counters(db_session, key)
    assert counters["available"] == 0
    assert counters["carried_forward"] == 2
    assert counters["used"] == 4

    # The expiry date is cleared, so a second run changes nothing.
    assert await ledger.expire_carried_forward(db_session, date(2032, 6, 1)) == []


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("joining_date", "expected"),
    [
        (None, 20),
        (date(2023, 6, 1), 20),
        (date(2024, 1, 1), 20),
        (date(2024, 7, 1), 11),
        (date(2024, 12, 31), 1),
        (date(2025, 2, 1), 0),
    ],
)
def test_prorated_entitlement(joining_date: date | None, expected: int) -> None:
    assert prorated_entitlement(20, 2024, joining_date) == expected


async def test_initialize_balances_skips_existing(
    db_session: AsyncSession, org: Org, annual_leave: uuid.UUID, balance_seeder: Any
) -> None:
    from leaveflow.models import LeaveType

    sick = LeaveType(company_id=org.company_id, code="SL", name="Sick Leave", default_days=10)
    db_session.add(sick)
    await db_session.commit()
    sick_id = sick.id
    await balance_seeder(org.manager.id, annual_leave, year=2033)

    auth = AuthContext(company_id=org.company_id, user_id=org.admin.id, role=UserRole.ADMIN)
    result = await ledger.initialize_balances(
        db_session,
        auth,
        InitializeBalancesPayload(employee_id=org.manager.id, year=2033, joining_date=date(2033, 7, 2)),
    )

    assert result.skipped == 1
    assert [b.leave_type_id for b in result.created] == [sick_id]
    # 183 of 365 days remain -> ceil(183 / 365 * 10) == 6
    assert result.created[0].entitled == 6
    assert result.created[0].available == 6


async def test_list_balances(db_session: AsyncSession, org: Org, employee_balance: BalanceKey) -> None:
    result = await ledger.list_balances(db_session, org.company_id, org.employee.id, employee_balance.year)
    assert result.total == 1
    assert result.items[0].available == 30

    other_year = await ledger.list_balances(db_session, org.company_id, org.employee.id, 1999)
    assert other_year.total == 0
