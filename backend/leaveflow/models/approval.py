# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase
from leaveflow.models.enums import ApprovalStatus


class ApprovalRecord(UUIDBase, TimestampMixin, table=True):
    """One level of a request's approval chain, bound to a concrete approver."""

    __tablename__ = "approval_record"
    __table_args__ = (
        sa.UniqueConstraint("request_id", "level", name="uq_approval_record_request_level"),
        sa.Index("ix_approval_record_approver_status", "approver_id", "status"),
    )

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    level: int = Field(ge=1)
    approver_id: uuid.UUID
    approver_role: str | None = Field(default=None, max_length=50)
    status: str = Field(default=ApprovalStatus.PENDING, max_length=50, sa_column_kwargs={"server_default": "PENDING"})
    comments: str | None = None
    signature: str | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
