# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import UUIDBase, now_utc


class LeaveBalance(UUIDBase, table=True):
    """Per employee, leave type and year day counters.

    Every day of capacity (entitled + carried_forward) sits in exactly one of
    available, pending or used. Rows are only mutated through the ledger's
    conditional updates.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint(
            "company_id", "employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"
        ),
        sa.CheckConstraint("entitled >= 0", name="ck_leave_balance_entitled_non_negative"),
        sa.CheckConstraint("available >= 0", name="ck_leave_balance_available_non_negative"),
        sa.CheckConstraint("pending >= 0", name="ck_leave_balance_pending_non_negative"),
        sa.CheckConstraint("used >= 0", name="ck_leave_balance_used_non_negative"),
        sa.CheckConstraint("carried_forward >= 0", name="ck_leave_balance_carried_forward_non_negative"),
        sa.CheckConstraint(
            "entitled + carried_forward = available + pending + used",
            name="ck_leave_balance_accounted",
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    year: int = Field(index=True)
    entitled: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    available: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    pending: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    used: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    carried_forward: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    carry_forward_expires_on: date | None = None
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now()},
    )
