# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leaveflow.models.enums import ApprovalStatus, RequestKind, RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class _DateRangePayload(BaseModel):
    start_date: date
    end_date: date
    selected_dates: list[date] | None = None
    reason: str | None = Field(default=None, max_length=2000)
    idempotency_key: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        if self.selected_dates is not None:
            if not self.selected_dates:
                msg = "selected_dates must not be empty when provided"
                raise ValueError(msg)
            for day in self.selected_dates:
                if not self.start_date <= day <= self.end_date:
                    msg = f"selected date {day.isoformat()} is outside the requested range"
                    raise ValueError(msg)
        return self


class CreateLeaveRequestPayload(_DateRangePayload):
    """Request body for submitting a leave request."""

    leave_type_id: uuid.UUID
    substitute_id: uuid.UUID | None = None


class CreateWfhRequestPayload(_DateRangePayload):
    """Request body for submitting a work-from-home request."""


class DecisionPayload(BaseModel):
    """Request body for approve/deny actions."""

    comment: str | None = Field(default=None, max_length=2000)
    signature: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalRecordResponse(BaseModel):
    id: uuid.UUID
    level: int
    approver_id: uuid.UUID
    approver_role: str | None
    status: ApprovalStatus
    comments: str | None
    decided_at: datetime | None


class LeaveRequestResponse(BaseModel):
    """A request together with its approval chain."""

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    kind: RequestKind
    leave_type_id: uuid.UUID | None
    start_date: date
    end_date: date
    selected_dates: list[date] | None
    day_count: int
    reason: str | None
    substitute_id: uuid.UUID | None
    status: RequestStatus
    balance_year: int | None
    idempotency_key: str | None
    decided_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: uuid.UUID | None
    created_at: datetime
    approvals: list[ApprovalRecordResponse] = []


class LeaveRequestListResponse(BaseModel):
    items: list[LeaveRequestResponse]
    total: int


class DecisionResponse(BaseModel):
    """Result of a single approve/deny call."""

    request: LeaveRequestResponse
    all_approved: bool
