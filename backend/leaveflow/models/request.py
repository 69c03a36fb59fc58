# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase
from leaveflow.models.enums import RequestKind, RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """A leave or work-from-home request and its lifecycle status."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_company_status", "company_id", "status"),
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
        sa.UniqueConstraint("company_id", "employee_id", "idempotency_key", name="uq_leave_request_idempotency"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    kind: str = Field(default=RequestKind.LEAVE, max_length=20, sa_column_kwargs={"server_default": "LEAVE"})
    leave_type_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="RESTRICT"), nullable=True, index=True),
    )
    start_date: date
    end_date: date
    selected_dates: list[str] | None = Field(default=None, sa_type=sa.JSON)
    day_count: int
    reason: str | None = None
    substitute_id: uuid.UUID | None = None
    status: str = Field(
        default=RequestStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    requester_role: str = Field(max_length=50)
    balance_year: int | None = None
    idempotency_key: str | None = Field(default=None, max_length=255)
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    cancelled_by: uuid.UUID | None = None
