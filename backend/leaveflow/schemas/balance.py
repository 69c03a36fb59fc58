# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel


class BalanceResponse(BaseModel):
    """Ledger counters for one employee, leave type and year."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    entitled: int
    available: int
    pending: int
    used: int
    carried_forward: int
    carry_forward_expires_on: date | None
    updated_at: datetime


class BalanceListResponse(BaseModel):
    items: list[BalanceResponse]
    total: int


class InitializeBalancesPayload(BaseModel):
    """Request body for onboarding balance creation."""

    employee_id: uuid.UUID
    year: int
    joining_date: date | None = None


class InitializeBalancesResponse(BaseModel):
    created: list[BalanceResponse]
    skipped: int
