# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase


class RolloverRun(UUIDBase, TimestampMixin, table=True):
    """Marks one (employee, leave type, year) balance as rolled into the next year."""

    __tablename__ = "rollover_run"
    __table_args__ = (
        sa.UniqueConstraint(
            "company_id", "employee_id", "leave_type_id", "from_year", name="uq_rollover_run_employee_type_year"
        ),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    from_year: int
    carried_forward: int = 0
    lost: int = 0
    executed_by: uuid.UUID
