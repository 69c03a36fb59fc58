"""Approval chain builder.

Turns a requester, a leave type and a day count into an ordered list of
concrete approvers. Two steps:

1. ``select_role_chain`` (pure): pick the abstract role list, either the
   default for the requester's role or the one of the highest-priority
   matching workflow rule.
2. ``resolve_chain``: bind each abstract role to a user through the
   directory, drop what cannot be bound and renumber from 1.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never

from pydantic import ValidationError
from sqlalchemy import select
from sqlmodel import col

from leaveflow.models.enums import ApproverRole, UserRole
from leaveflow.models.workflow_rule import WorkflowRule
from leaveflow.schemas.workflow import ApprovalLevelSpec, RuleConditions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.models.leave_type import LeaveType
    from leaveflow.services.directory import UserDirectory, UserInfo

logger = logging.getLogger(__name__)

DEFAULT_CHAINS: dict[UserRole, tuple[ApproverRole, ...]] = {
    UserRole.EMPLOYEE: (ApproverRole.DIRECT_MANAGER,),
    UserRole.MANAGER: (ApproverRole.DEPARTMENT_HEAD,),
    UserRole.DEPARTMENT_DIRECTOR: (ApproverRole.EXECUTIVE,),
    UserRole.EXECUTIVE: (ApproverRole.ANOTHER_EXECUTIVE,),
    UserRole.HR: (ApproverRole.DIRECT_MANAGER,),
    UserRole.ADMIN: (ApproverRole.DIRECT_MANAGER,),
}


@dataclass(frozen=True)
class ChainLevel:
    level: int
    approver_id: uuid.UUID
    role: ApproverRole


@dataclass(frozen=True)
class RoleChain:
    """Abstract roles to resolve, plus the policy of the rule that produced them."""

    roles: tuple[ApproverRole, ...]
    skip_duplicate_signatures: bool = False
    rule_id: uuid.UUID | None = None


@dataclass(frozen=True)
class ParsedRule:
    id: uuid.UUID
    name: str
    priority: int
    conditions: RuleConditions
    levels: tuple[ApprovalLevelSpec, ...]
    skip_duplicate_signatures: bool


# ---------------------------------------------------------------------------
# Rule matching
# ---------------------------------------------------------------------------


def parse_rule(rule: WorkflowRule) -> ParsedRule | None:
    """Validate a stored rule; malformed rules are logged and ignored."""
    try:
        conditions = RuleConditions.model_validate(rule.conditions_json or {})
        levels = tuple(ApprovalLevelSpec.model_validate(level) for level in rule.approval_levels_json)
    except ValidationError:
        logger.warning("Ignoring malformed workflow rule %s (%s)", rule.id, rule.name)
        return None
    return ParsedRule(
        id=rule.id,
        name=rule.name,
        priority=rule.priority,
        conditions=conditions,
        levels=levels,
        skip_duplicate_signatures=rule.skip_duplicate_signatures,
    )


def rule_matches(
    conditions: RuleConditions,
    requester: UserInfo,
    leave_type: LeaveType | None,
    day_count: int,
) -> bool:
    """True when every present condition holds. Day bounds are exclusive."""
    if conditions.user_role is not None and requester.role.value not in {r.upper() for r in conditions.user_role}:
        return False

    if conditions.leave_type is not None:
        if leave_type is None:
            return False
        wanted = {value.lower() for value in conditions.leave_type}
        if leave_type.code.lower() not in wanted and str(leave_type.id) not in wanted:
            return False

    if conditions.department is not None and requester.department not in conditions.department:
        return False

    if conditions.days_greater_than is not None and not day_count > conditions.days_greater_than:
        return False

    return conditions.days_less_than is None or day_count < conditions.days_less_than


def select_role_chain(
    rules: Sequence[ParsedRule],
    requester: UserInfo,
    leave_type: LeaveType | None,
    day_count: int,
) -> RoleChain:
    """Pick the abstract role list for a request.

    The highest-priority matching rule wins; with no match the requester's
    role decides. Non-required levels are left out.
    """
    for rule in sorted(rules, key=lambda r: r.priority, reverse=True):
        if rule_matches(rule.conditions, requester, leave_type, day_count):
            logger.debug("Workflow rule %s (%s) matched for %s", rule.id, rule.name, requester.id)
            return RoleChain(
                roles=tuple(level.role for level in rule.levels if level.required),
                skip_duplicate_signatures=rule.skip_duplicate_signatures,
                rule_id=rule.id,
            )
    return RoleChain(roles=DEFAULT_CHAINS[requester.role])


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _reference(requester: UserInfo, approver_id: uuid.UUID | None) -> uuid.UUID | None:
    # Self-references cannot approve.
    if approver_id is None or approver_id == requester.id:
        return None
    return approver_id


async def resolve_role(
    role: ApproverRole,
    requester: UserInfo,
    directory: UserDirectory,
    already_chosen: Sequence[uuid.UUID] = (),
) -> uuid.UUID | None:
    """Bind one abstract role to a concrete approver, or None."""
    match role:
        case ApproverRole.DIRECT_MANAGER:
            return _reference(requester, requester.manager_id)
        case ApproverRole.DEPARTMENT_HEAD:
            return _reference(requester, requester.director_id)
        case ApproverRole.HR:
            user = await directory.find_active_by_role(requester.company_id, UserRole.HR, exclude_ids=[requester.id])
        case ApproverRole.EXECUTIVE:
            user = await directory.find_active_by_role(
                requester.company_id, UserRole.EXECUTIVE, exclude_ids=[requester.id]
            )
        case ApproverRole.ANOTHER_EXECUTIVE:
            user = await directory.find_active_by_role(
                requester.company_id, UserRole.EXECUTIVE, exclude_ids=[requester.id, *already_chosen]
            )
        case _:
            assert_never(role)
    return user.id if user is not None else None


async def resolve_chain(
    role_chain: RoleChain,
    requester: UserInfo,
    directory: UserDirectory,
) -> list[ChainLevel]:
    """Resolve every role, drop the unresolved ones and number levels from 1."""
    chosen: list[uuid.UUID] = []
    levels: list[ChainLevel] = []
    for role in role_chain.roles:
        approver_id = await resolve_role(role, requester, directory, chosen)
        if approver_id is None:
            logger.info("No approver for %s on request by %s; level dropped", role, requester.id)
            continue
        if role_chain.skip_duplicate_signatures and approver_id in chosen:
            continue
        chosen.append(approver_id)
        levels.append(ChainLevel(level=len(levels) + 1, approver_id=approver_id, role=role))
    return levels


async def load_active_rules(session: AsyncSession, company_id: uuid.UUID) -> list[ParsedRule]:
    result = await session.execute(
        select(WorkflowRule)
        .where(col(WorkflowRule.company_id) == company_id, col(WorkflowRule.is_active).is_(True))
        .order_by(col(WorkflowRule.priority).desc(), col(WorkflowRule.created_at))
    )
    return [parsed for rule in result.scalars().all() if (parsed := parse_rule(rule)) is not None]


async def build_approval_chain(
    session: AsyncSession,
    requester: UserInfo,
    leave_type: LeaveType | None,
    day_count: int,
    directory: UserDirectory,
) -> list[ChainLevel]:
    """Build the concrete approval chain for a new request. May be empty."""
    rules = await load_active_rules(session, requester.company_id)
    role_chain = select_role_chain(rules, requester, leave_type, day_count)
    return await resolve_chain(role_chain, requester, directory)
