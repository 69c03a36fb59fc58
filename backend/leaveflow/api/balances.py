# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from leaveflow.api.deps import AuthDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.exceptions import NotAuthorized
from leaveflow.schemas.balance import BalanceListResponse
from leaveflow.services import ledger

employee_balance_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/balances",
    tags=["balances"],
    dependencies=[Depends(validate_company_scope)],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None),
) -> BalanceListResponse:
    """Balances of one employee for a year (current year by default)."""
    if employee_id != auth.user_id and not auth.is_admin:
        raise NotAuthorized("Not allowed to view this employee's balances")
    return await ledger.list_balances(session, company_id, employee_id, year or date.today().year)
