from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from leaveflow.exceptions import NotFound
from leaveflow.models.enums import AuditAction, AuditEntityType
from leaveflow.models.workflow_rule import WorkflowRule
from leaveflow.schemas.workflow import (
    ApprovalLevelSpec,
    RuleConditions,
    WorkflowRuleListResponse,
    WorkflowRuleResponse,
)
from leaveflow.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.auth import AuthContext
    from leaveflow.schemas.workflow import CreateWorkflowRuleRequest, UpdateWorkflowRuleRequest


def _build_rule_response(rule: WorkflowRule) -> WorkflowRuleResponse:
    return WorkflowRuleResponse(
        id=rule.id,
        company_id=rule.company_id,
        name=rule.name,
        description=rule.description,
        priority=rule.priority,
        is_active=rule.is_active,
        conditions=RuleConditions.model_validate(rule.conditions_json) if rule.conditions_json else None,
        approval_levels=[ApprovalLevelSpec.model_validate(level) for level in rule.approval_levels_json],
        skip_duplicate_signatures=rule.skip_duplicate_signatures,
    )


def _dump_conditions(conditions: RuleConditions | None) -> dict[str, Any] | None:
    if conditions is None:
        return None
    return conditions.model_dump(mode="json", exclude_none=True)


def _dump_levels(levels: list[ApprovalLevelSpec]) -> list[dict[str, Any]]:
    return [level.model_dump(mode="json") for level in levels]


async def _get_rule_or_404(session: AsyncSession, company_id: uuid.UUID, rule_id: uuid.UUID) -> WorkflowRule:
    result = await session.execute(
        select(WorkflowRule).where(col(WorkflowRule.id) == rule_id, col(WorkflowRule.company_id) == company_id)
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFound("Workflow rule not found")
    return rule


async def create_workflow_rule(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateWorkflowRuleRequest,
) -> WorkflowRuleResponse:
    rule = WorkflowRule(
        company_id=auth.company_id,
        name=payload.name,
        description=payload.description,
        priority=payload.priority,
        is_active=payload.is_active,
        conditions_json=_dump_conditions(payload.conditions),
        approval_levels_json=_dump_levels(payload.approval_levels),
        skip_duplicate_signatures=payload.skip_duplicate_signatures,
    )
    session.add(rule)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.WORKFLOW_RULE,
        entity_id=rule.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(rule),
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def list_workflow_rules(session: AsyncSession, company_id: uuid.UUID) -> WorkflowRuleListResponse:
    """All rules of a company, highest priority first."""
    base_filter = [col(WorkflowRule.company_id) == company_id]
    count_result = await session.execute(select(func.count()).select_from(WorkflowRule).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(WorkflowRule)
        .where(*base_filter)
        .order_by(col(WorkflowRule.priority).desc(), col(WorkflowRule.created_at))
    )
    return WorkflowRuleListResponse(
        items=[_build_rule_response(r) for r in result.scalars().all()],
        total=total,
    )


async def get_workflow_rule(session: AsyncSession, company_id: uuid.UUID, rule_id: uuid.UUID) -> WorkflowRuleResponse:
    return _build_rule_response(await _get_rule_or_404(session, company_id, rule_id))


async def update_workflow_rule(
    session: AsyncSession,
    auth: AuthContext,
    rule_id: uuid.UUID,
    payload: UpdateWorkflowRuleRequest,
) -> WorkflowRuleResponse:
    rule = await _get_rule_or_404(session, auth.company_id, rule_id)
    before_dict = model_to_audit_dict(rule)

    updates = payload.model_dump(exclude_unset=True)
    for field in ("name", "description", "priority", "is_active", "skip_duplicate_signatures"):
        if field in updates:
            setattr(rule, field, updates[field])
    if "conditions" in updates:
        rule.conditions_json = _dump_conditions(payload.conditions)
    if payload.approval_levels is not None:
        rule.approval_levels_json = _dump_levels(payload.approval_levels)

    session.add(rule)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.WORKFLOW_RULE,
        entity_id=rule.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(rule),
    )

    await session.commit()
    await session.refresh(rule)
    return _build_rule_response(rule)


async def delete_workflow_rule(session: AsyncSession, auth: AuthContext, rule_id: uuid.UUID) -> None:
    rule = await _get_rule_or_404(session, auth.company_id, rule_id)

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.WORKFLOW_RULE,
        entity_id=rule.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(rule),
    )

    await session.delete(rule)
    await session.commit()
