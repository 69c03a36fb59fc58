"""Holiday calendar API: admin CRUD, tenant isolation, audit, effect on day counts."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leaveflow.models.audit import AuditLog

if TYPE_CHECKING:
    from conftest import Org
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.services.ledger import BalanceKey


def _holiday_payload(day: str = "2025-12-25", name: str = "Christmas Day") -> dict[str, str]:
    return {"date": day, "name": name}


async def test_create_holiday(async_client: AsyncClient, org: Org) -> None:
    resp = await async_client.post(org.url("/holidays"), json=_holiday_payload(), headers=org.headers(org.hr))

    assert resp.status_code == 201
    data = resp.json()
    assert (data["date"], data["name"]) == ("2025-12-25", "Christmas Day")
    assert data["company_id"] == str(org.company_id)


async def test_duplicate_date_conflicts(async_client: AsyncClient, org: Org) -> None:
    await async_client.post(org.url("/holidays"), json=_holiday_payload(), headers=org.headers(org.admin))

    resp = await async_client.post(
        org.url("/holidays"), json=_holiday_payload(name="Xmas"), headers=org.headers(org.admin)
    )

    assert resp.status_code == 409


async def test_list_holidays_by_year(async_client: AsyncClient, org: Org) -> None:
    for day, name in (("2024-12-25", "Christmas 2024"), ("2025-01-01", "New Year"), ("2025-12-25", "Christmas")):
        await async_client.post(org.url("/holidays"), json=_holiday_payload(day, name), headers=org.headers(org.admin))

    everything = await async_client.get(org.url("/holidays"), headers=org.headers(org.employee))
    only_2025 = await async_client.get(org.url("/holidays"), params={"year": 2025}, headers=org.headers(org.employee))
    paged = await async_client.get(
        org.url("/holidays"), params={"offset": 1, "limit": 1}, headers=org.headers(org.employee)
    )

    assert everything.json()["total"] == 3
    assert [h["name"] for h in only_2025.json()["items"]] == ["New Year", "Christmas"]
    assert paged.json()["total"] == 3
    assert [h["name"] for h in paged.json()["items"]] == ["New Year"]


async def test_regular_users_cannot_manage_holidays(async_client: AsyncClient, org: Org) -> None:
    created = await async_client.post(org.url("/holidays"), json=_holiday_payload(), headers=org.headers(org.admin))

    create = await async_client.post(
        org.url("/holidays"), json=_holiday_payload("2025-01-01"), headers=org.headers(org.manager)
    )
    delete = await async_client.delete(
        org.url(f"/holidays/{created.json()['id']}"), headers=org.headers(org.employee)
    )

    assert create.status_code == 403
    assert delete.status_code == 403


async def test_holidays_are_isolated_per_company(async_client: AsyncClient, org: Org) -> None:
    await async_client.post(org.url("/holidays"), json=_holiday_payload(), headers=org.headers(org.admin))

    other_company = uuid.uuid4()
    resp = await async_client.get(
        f"/companies/{other_company}/holidays",
        headers={**org.headers(org.admin), "X-Company-Id": str(other_company)},
    )

    assert resp.status_code == 200
    assert resp.json()["total"] == 0


async def test_delete_unknown_holiday_is_not_found(async_client: AsyncClient, org: Org) -> None:
    resp = await async_client.delete(org.url(f"/holidays/{uuid.uuid4()}"), headers=org.headers(org.admin))
    assert resp.status_code == 404


async def test_holiday_changes_are_audited(async_client: AsyncClient, db_session: AsyncSession, org: Org) -> None:
    created = await async_client.post(org.url("/holidays"), json=_holiday_payload(), headers=org.headers(org.admin))
    holiday_id = uuid.UUID(created.json()["id"])
    await async_client.delete(org.url(f"/holidays/{holiday_id}"), headers=org.headers(org.admin))

    result = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_type) == "HOLIDAY", col(AuditLog.entity_id) == holiday_id)
    )
    entries = {e.action: e for e in result.scalars().all()}

    assert set(entries) == {"CREATE", "DELETE"}
    assert all(e.actor_id == org.admin.id for e in entries.values())
    assert entries["CREATE"].after_json is not None
    assert entries["CREATE"].after_json["name"] == "Christmas Day"
    assert entries["DELETE"].before_json is not None
    assert entries["DELETE"].after_json is None


async def test_new_holiday_shortens_later_requests(
    async_client: AsyncClient, org: Org, employee_balance: BalanceKey
) -> None:
    leave_type_id = str(employee_balance.leave_type_id)
    await async_client.post(
        org.url("/holidays"), json=_holiday_payload("2025-03-11", "Company Day"), headers=org.headers(org.admin)
    )

    resp = await async_client.post(
        org.url("/leave-requests"),
        json={"leave_type_id": leave_type_id, "start_date": "2025-03-10", "end_date": "2025-03-12"},
        headers=org.headers(org.employee),
    )

    assert resp.status_code == 200, resp.text
    assert resp.json()["day_count"] == 2
