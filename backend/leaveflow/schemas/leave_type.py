# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class CreateLeaveTypeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    default_days: int = Field(default=0, ge=0)
    allow_carry_forward: bool = False
    max_carry_forward: int = Field(default=0, ge=0)
    template_id: str | None = Field(default=None, max_length=255)


class UpdateLeaveTypeRequest(BaseModel):
    """Partial update; omitted fields are left untouched."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    default_days: int | None = Field(default=None, ge=0)
    allow_carry_forward: bool | None = None
    max_carry_forward: int | None = Field(default=None, ge=0)
    template_id: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class LeaveTypeResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    code: str
    name: str
    default_days: int
    allow_carry_forward: bool
    max_carry_forward: int
    template_id: str | None
    is_active: bool


class LeaveTypeListResponse(BaseModel):
    items: list[LeaveTypeResponse]
    total: int
