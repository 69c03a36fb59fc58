# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel


class RolloverPreviewItem(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_code: str
    unused: int
    carried_forward: int
    lost: int
    reason: str
    already_executed: bool


class RolloverPreviewResponse(BaseModel):
    """What a rollover of ``from_year`` would do, without doing it."""

    from_year: int
    to_year: int
    items: list[RolloverPreviewItem]
    total_unused: int
    total_carried_forward: int
    total_lost: int


class RolloverExecuteResponse(BaseModel):
    from_year: int
    to_year: int
    executed: int
    already_done: int
    failed: int
    already_executed: bool
    total_carried_forward: int


class ExpireCarryForwardResponse(BaseModel):
    as_of: date
    expired_balances: int
