from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from leaveflow.models import AuditLog, LeaveBalance, LeaveType, RolloverRun
from leaveflow.services import ledger
from leaveflow.services.rollover import carry_forward_expiry, plan_carry_forward

if TYPE_CHECKING:
    from conftest import Org, Stubs
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession


async def _prior_year_balance(
    session: AsyncSession,
    org: Org,
    leave_type_id: uuid.UUID,
    *,
    used: int,
    entitled: int = 30,
    employee_id: uuid.UUID | None = None,
) -> None:
    session.add(
        LeaveBalance(
            company_id=org.company_id,
            employee_id=employee_id or org.employee.id,
            leave_type_id=leave_type_id,
            year=2024,
            entitled=entitled,
            available=entitled - used,
            used=used,
        )
    )
    await session.commit()


@pytest.fixture
async def sick_leave(db_session: AsyncSession, org: Org) -> uuid.UUID:
    leave_type = LeaveType(company_id=org.company_id, code="SL", name="Sick Leave", default_days=12)
    db_session.add(leave_type)
    await db_session.commit()
    return leave_type.id


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("allow", "cap", "unused", "expected"),
    [
        (True, 5, 20, (5, 15, "Carry forward capped at 5 day(s)")),
        (True, 5, 3, (3, 0, "All unused days carried forward")),
        (True, 5, 0, (0, 0, "No unused days")),
        (False, 5, 7, (0, 7, "Sick Leave does not allow carry forward")),
    ],
)
def test_plan_carry_forward(allow: bool, cap: int, unused: int, expected: tuple[int, int, str]) -> None:
    leave_type = LeaveType(
        company_id=uuid.uuid4(), code="X", name="Sick Leave", allow_carry_forward=allow, max_carry_forward=cap
    )
    assert plan_carry_forward(leave_type, unused) == expected


def test_carried_days_expire_at_start_of_april() -> None:
    assert carry_forward_expiry(2025) == date(2025, 4, 1)


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


async def test_preview_reports_without_writing(
    async_client: AsyncClient,
    db_session: AsyncSession,
    org: Org,
    annual_leave: uuid.UUID,
    sick_leave: uuid.UUID,
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=10)
    await _prior_year_balance(db_session, org, sick_leave, entitled=12, used=8)

    resp = await async_client.get(
        org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.hr)
    )

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["to_year"] == 2025
    items = {item["leave_type_code"]: item for item in data["items"]}
    assert (items["AL"]["unused"], items["AL"]["carried_forward"], items["AL"]["lost"]) == (20, 5, 15)
    assert (items["SL"]["carried_forward"], items["SL"]["lost"]) == (0, 4)
    assert items["AL"]["employee_name"] == org.employee.name
    assert (data["total_unused"], data["total_carried_forward"], data["total_lost"]) == (24, 5, 19)

    next_year = await db_session.execute(
        select(func.count()).select_from(LeaveBalance).where(col(LeaveBalance.year) == 2025)
    )
    assert next_year.scalar_one() == 0


async def test_preview_skips_inactive_employees(
    async_client: AsyncClient, db_session: AsyncSession, org: Org, stubs: Stubs, annual_leave: uuid.UUID
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=0)
    stubs.directory.seed(org.employee.model_copy(update={"is_active": False}))

    resp = await async_client.get(
        org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.admin)
    )

    assert resp.json()["items"] == []


async def test_rollover_requires_admin(async_client: AsyncClient, org: Org) -> None:
    resp = await async_client.post(
        org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.manager)
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


async def test_execute_creates_next_year_balances(
    async_client: AsyncClient,
    db_session: AsyncSession,
    org: Org,
    annual_leave: uuid.UUID,
    sick_leave: uuid.UUID,
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=10)
    await _prior_year_balance(db_session, org, sick_leave, entitled=12, used=8)

    resp = await async_client.post(
        org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.admin)
    )

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert (data["executed"], data["already_done"], data["failed"]) == (2, 0, 0)
    assert data["already_executed"] is False
    assert data["total_carried_forward"] == 5

    annual = await ledger.get_balance(
        db_session, ledger.BalanceKey(org.company_id, org.employee.id, annual_leave, 2025)
    )
    assert annual is not None
    assert (annual.entitled, annual.carried_forward, annual.available) == (30, 5, 35)
    assert annual.carry_forward_expires_on == date(2025, 4, 1)

    sick = await ledger.get_balance(db_session, ledger.BalanceKey(org.company_id, org.employee.id, sick_leave, 2025))
    assert sick is not None
    assert (sick.entitled, sick.carried_forward, sick.available) == (12, 0, 12)
    assert sick.carry_forward_expires_on is None

    runs = await db_session.execute(select(RolloverRun))
    assert {(r.leave_type_id, r.carried_forward, r.lost, r.executed_by) for r in runs.scalars()} == {
        (annual_leave, 5, 15, org.admin.id),
        (sick_leave, 0, 4, org.admin.id),
    }


async def test_second_execution_is_a_no_op(
    async_client: AsyncClient, db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=10)
    url = org.url("/admin/leave-rollover")

    await async_client.post(url, params={"year": 2024}, headers=org.headers(org.admin))
    again = await async_client.post(url, params={"year": 2024}, headers=org.headers(org.admin))

    assert again.status_code == 200
    assert again.json()["already_executed"] is True
    assert again.json()["executed"] == 0
    assert again.json()["already_done"] == 1

    annual = await ledger.get_balance(
        db_session, ledger.BalanceKey(org.company_id, org.employee.id, annual_leave, 2025)
    )
    assert annual is not None
    assert (annual.carried_forward, annual.available) == (5, 35)

    preview = await async_client.get(url, params={"year": 2024}, headers=org.headers(org.admin))
    assert preview.json()["items"][0]["already_executed"] is True


async def test_execute_adds_to_existing_next_year_balance(
    async_client: AsyncClient, db_session: AsyncSession, org: Org, annual_leave: uuid.UUID, balance_seeder: Any
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=27)
    await balance_seeder(org.employee.id, annual_leave, entitled=30, year=2025)

    await async_client.post(org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.admin))

    annual = await ledger.get_balance(
        db_session, ledger.BalanceKey(org.company_id, org.employee.id, annual_leave, 2025)
    )
    assert annual is not None
    assert (annual.entitled, annual.carried_forward, annual.available) == (30, 3, 33)
    assert annual.carry_forward_expires_on == date(2025, 4, 1)


async def test_execute_writes_audit_entries(
    async_client: AsyncClient, db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=10)

    await async_client.post(org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.admin))

    result = await db_session.execute(select(AuditLog).where(col(AuditLog.action) == "ROLLOVER"))
    entries = list(result.scalars().all())
    assert len(entries) == 1
    assert entries[0].actor_id == org.admin.id


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


async def test_expire_endpoint_lapses_unused_carry(
    async_client: AsyncClient, db_session: AsyncSession, org: Org, annual_leave: uuid.UUID
) -> None:
    await _prior_year_balance(db_session, org, annual_leave, used=10)
    await async_client.post(org.url("/admin/leave-rollover"), params={"year": 2024}, headers=org.headers(org.admin))
    key = ledger.BalanceKey(org.company_id, org.employee.id, annual_leave, 2025)

    early = await async_client.post(
        org.url("/admin/leave-rollover/expire"), params={"as_of": "2025-03-31"}, headers=org.headers(org.admin)
    )
    due = await async_client.post(
        org.url("/admin/leave-rollover/expire"), params={"as_of": "2025-04-01"}, headers=org.headers(org.admin)
    )
    repeat = await async_client.post(
        org.url("/admin/leave-rollover/expire"), params={"as_of": "2025-04-02"}, headers=org.headers(org.admin)
    )

    assert early.json()["expired_balances"] == 0
    assert due.json()["expired_balances"] == 1
    assert repeat.json()["expired_balances"] == 0

    annual = await ledger.get_balance(db_session, key)
    assert annual is not None
    assert (annual.carried_forward, annual.available) == (0, 30)
    assert annual.carry_forward_expires_on is None
