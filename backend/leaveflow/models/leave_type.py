# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """A category of absence (Annual, Sick, Personal...) with its entitlement policy."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("company_id", "code", name="uq_leave_type_company_code"),)

    company_id: uuid.UUID = Field(index=True)
    code: str = Field(max_length=50)
    name: str = Field(max_length=255)
    default_days: int = Field(default=0, ge=0)
    allow_carry_forward: bool = False
    max_carry_forward: int = Field(default=0, ge=0)
    template_id: str | None = Field(default=None, max_length=255)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
