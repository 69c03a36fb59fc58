# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase


class WorkflowRule(UUIDBase, TimestampMixin, table=True):
    """Tenant-configured override of the default approval chain.

    ``conditions_json`` and ``approval_levels_json`` are validated through
    ``leaveflow.schemas.workflow`` before they are written.
    """

    __tablename__ = "workflow_rule"
    __table_args__ = (sa.Index("ix_workflow_rule_company_active", "company_id", "is_active"),)

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    description: str | None = None
    priority: int = Field(default=0)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    conditions_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    approval_levels_json: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    skip_duplicate_signatures: bool = False
