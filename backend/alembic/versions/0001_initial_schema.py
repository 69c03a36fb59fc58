"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("default_days", sa.Integer(), nullable=False),
        sa.Column("allow_carry_forward", sa.Boolean(), nullable=False),
        sa.Column("max_carry_forward", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("company_id", "code", name="uq_leave_type_company_code"),
    )
    op.create_index("ix_leave_type_company_id", "leave_type", ["company_id"])

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("entitled", sa.Integer(), server_default="0", nullable=False),
        sa.Column("available", sa.Integer(), server_default="0", nullable=False),
        sa.Column("pending", sa.Integer(), server_default="0", nullable=False),
        sa.Column("used", sa.Integer(), server_default="0", nullable=False),
        sa.Column("carried_forward", sa.Integer(), server_default="0", nullable=False),
        sa.Column("carry_forward_expires_on", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "company_id", "employee_id", "leave_type_id", "year", name="uq_leave_balance_employee_type_year"
        ),
        sa.CheckConstraint("entitled >= 0", name="ck_leave_balance_entitled_non_negative"),
        sa.CheckConstraint("available >= 0", name="ck_leave_balance_available_non_negative"),
        sa.CheckConstraint("pending >= 0", name="ck_leave_balance_pending_non_negative"),
        sa.CheckConstraint("used >= 0", name="ck_leave_balance_used_non_negative"),
        sa.CheckConstraint("carried_forward >= 0", name="ck_leave_balance_carried_forward_non_negative"),
        sa.CheckConstraint(
            "entitled + carried_forward = available + pending + used", name="ck_leave_balance_accounted"
        ),
    )
    op.create_index("ix_leave_balance_company_id", "leave_balance", ["company_id"])
    op.create_index("ix_leave_balance_employee_id", "leave_balance", ["employee_id"])
    op.create_index("ix_leave_balance_leave_type_id", "leave_balance", ["leave_type_id"])
    op.create_index("ix_leave_balance_year", "leave_balance", ["year"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=20), server_default="LEAVE", nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("selected_dates", sa.JSON(), nullable=True),
        sa.Column("day_count", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("substitute_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=50), server_default="PENDING", nullable=False),
        sa.Column("requester_role", sa.String(length=50), nullable=False),
        sa.Column("balance_year", sa.Integer(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.Uuid(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("company_id", "employee_id", "idempotency_key", name="uq_leave_request_idempotency"),
    )
    op.create_index("ix_leave_request_company_id", "leave_request", ["company_id"])
    op.create_index("ix_leave_request_employee_id", "leave_request", ["employee_id"])
    op.create_index("ix_leave_request_leave_type_id", "leave_request", ["leave_type_id"])
    op.create_index("ix_leave_request_status", "leave_request", ["status"])
    op.create_index("ix_leave_request_company_status", "leave_request", ["company_id", "status"])
    op.create_index("ix_leave_request_employee_dates", "leave_request", ["employee_id", "start_date", "end_date"])

    op.create_table(
        "approval_record",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("request_id", sa.Uuid(), sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("approver_role", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=50), server_default="PENDING", nullable=False),
        sa.Column("comments", sa.String(), nullable=True),
        sa.Column("signature", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("request_id", "level", name="uq_approval_record_request_level"),
    )
    op.create_index("ix_approval_record_request_id", "approval_record", ["request_id"])
    op.create_index("ix_approval_record_approver_status", "approval_record", ["approver_id", "status"])

    op.create_table(
        "workflow_rule",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("conditions_json", sa.JSON(), nullable=True),
        sa.Column("approval_levels_json", sa.JSON(), nullable=False),
        sa.Column("skip_duplicate_signatures", sa.Boolean(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_workflow_rule_company_id", "workflow_rule", ["company_id"])
    op.create_index("ix_workflow_rule_company_active", "workflow_rule", ["company_id", "is_active"])

    op.create_table(
        "rollover_run",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_year", sa.Integer(), nullable=False),
        sa.Column("carried_forward", sa.Integer(), nullable=False),
        sa.Column("lost", sa.Integer(), nullable=False),
        sa.Column("executed_by", sa.Uuid(), nullable=False),
        _created_at(),
        sa.UniqueConstraint(
            "company_id", "employee_id", "leave_type_id", "from_year", name="uq_rollover_run_employee_type_year"
        ),
    )
    op.create_index("ix_rollover_run_company_id", "rollover_run", ["company_id"])
    op.create_index("ix_rollover_run_employee_id", "rollover_run", ["employee_id"])

    op.create_table(
        "company_holiday",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("company_id", "date", name="uq_holiday_company_date"),
    )
    op.create_index("ix_company_holiday_company_id", "company_holiday", ["company_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_company_id", "audit_log", ["company_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("company_holiday")
    op.drop_table("rollover_run")
    op.drop_table("workflow_rule")
    op.drop_table("approval_record")
    op.drop_table("leave_request")
    op.drop_table("leave_balance")
    op.drop_table("leave_type")
