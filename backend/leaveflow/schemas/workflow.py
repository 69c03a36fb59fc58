# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from leaveflow.models.enums import ApproverRole

# Role spellings accepted in stored rules besides the enum values themselves.
ROLE_ALIASES: dict[str, ApproverRole] = {
    "manager": ApproverRole.DIRECT_MANAGER,
    "direct_manager": ApproverRole.DIRECT_MANAGER,
    "department_director": ApproverRole.DEPARTMENT_HEAD,
    "department_head": ApproverRole.DEPARTMENT_HEAD,
    "hr": ApproverRole.HR,
    "executive": ApproverRole.EXECUTIVE,
    "another_executive": ApproverRole.ANOTHER_EXECUTIVE,
}


def parse_approver_role(value: str | ApproverRole) -> ApproverRole:
    """Map a stored role string (enum value or alias) onto ``ApproverRole``."""
    if isinstance(value, ApproverRole):
        return value
    try:
        return ApproverRole(value)
    except ValueError:
        pass
    role = ROLE_ALIASES.get(value.lower())
    if role is None:
        msg = f"unknown approver role: {value!r}"
        raise ValueError(msg)
    return role


class RuleConditions(BaseModel):
    """Conditions a requester must meet for a rule to apply.

    Absent fields match anything; present fields are ANDed together.
    """

    user_role: list[str] | None = None
    leave_type: list[str] | None = None
    department: list[str] | None = None
    days_greater_than: int | None = None
    days_less_than: int | None = None


def _check_day_bounds(cond: RuleConditions | None) -> None:
    if (
        cond is not None
        and cond.days_greater_than is not None
        and cond.days_less_than is not None
        and cond.days_greater_than >= cond.days_less_than
    ):
        msg = "days_greater_than must be smaller than days_less_than"
        raise ValueError(msg)


class ApprovalLevelSpec(BaseModel):
    role: ApproverRole
    required: bool = True

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_approver_role(value)
        return value


class CreateWorkflowRuleRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    priority: int = 0
    is_active: bool = True
    conditions: RuleConditions | None = None
    approval_levels: list[ApprovalLevelSpec] = Field(min_length=1)
    skip_duplicate_signatures: bool = False

    @model_validator(mode="after")
    def _validate_bounds(self) -> Self:
        _check_day_bounds(self.conditions)
        return self


class UpdateWorkflowRuleRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    priority: int | None = None
    is_active: bool | None = None
    conditions: RuleConditions | None = None
    approval_levels: list[ApprovalLevelSpec] | None = Field(default=None, min_length=1)
    skip_duplicate_signatures: bool | None = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> Self:
        _check_day_bounds(self.conditions)
        return self


class WorkflowRuleResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    description: str | None
    priority: int
    is_active: bool
    conditions: RuleConditions | None
    approval_levels: list[ApprovalLevelSpec]
    skip_duplicate_signatures: bool


class WorkflowRuleListResponse(BaseModel):
    items: list[WorkflowRuleResponse]
    total: int
