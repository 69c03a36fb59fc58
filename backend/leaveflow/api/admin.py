# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from leaveflow.api.deps import AdminDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.schemas.balance import InitializeBalancesPayload, InitializeBalancesResponse
from leaveflow.schemas.leave_type import (
    CreateLeaveTypeRequest,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from leaveflow.schemas.rollover import ExpireCarryForwardResponse, RolloverExecuteResponse, RolloverPreviewResponse
from leaveflow.schemas.workflow import (
    CreateWorkflowRuleRequest,
    UpdateWorkflowRuleRequest,
    WorkflowRuleListResponse,
    WorkflowRuleResponse,
)
from leaveflow.services import leave_types as leave_type_service
from leaveflow.services import ledger
from leaveflow.services import rollover as rollover_service
from leaveflow.services import workflow_rules as workflow_rule_service

admin_router = APIRouter(
    prefix="/companies/{company_id}/admin",
    tags=["admin"],
    dependencies=[Depends(validate_company_scope)],
)


# ---------------------------------------------------------------------------
# Rollover and balances
# ---------------------------------------------------------------------------


@admin_router.get("/leave-rollover", response_model=RolloverPreviewResponse)
async def preview_rollover(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    year: int = Query(),
) -> RolloverPreviewResponse:
    """Preview the rollover of ``year`` into ``year + 1``."""
    return await rollover_service.preview_rollover(session, company_id, year)


@admin_router.post("/leave-rollover", response_model=RolloverExecuteResponse)
async def execute_rollover(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    year: int = Query(),
) -> RolloverExecuteResponse:
    """Execute the rollover. Re-running reports ``already_executed``."""
    return await rollover_service.execute_rollover(session, company_id, year, auth.user_id)


@admin_router.post("/leave-rollover/expire", response_model=ExpireCarryForwardResponse)
async def expire_carried_forward(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    as_of: date | None = Query(default=None),
) -> ExpireCarryForwardResponse:
    return await rollover_service.run_carry_forward_expiry(session, as_of or date.today(), company_id, auth.user_id)


@admin_router.post("/leave-balances/initialize", response_model=InitializeBalancesResponse)
async def initialize_balances(
    payload: InitializeBalancesPayload,
    session: SessionDep,
    auth: AdminDep,
) -> InitializeBalancesResponse:
    """Create an employee's balances for a year, pro-rated for mid-year joiners."""
    return await ledger.initialize_balances(session, auth, payload)


# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


@admin_router.post("/leave-types", response_model=LeaveTypeResponse, status_code=201)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    return await leave_type_service.create_leave_type(session, auth, payload)


@admin_router.get("/leave-types", response_model=LeaveTypeListResponse)
async def list_leave_types(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    include_inactive: bool = Query(default=False),
) -> LeaveTypeListResponse:
    return await leave_type_service.list_leave_types(session, company_id, include_inactive)


@admin_router.get("/leave-types/{leave_type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    return await leave_type_service.get_leave_type(session, company_id, leave_type_id)


@admin_router.patch("/leave-types/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)


@admin_router.delete("/leave-types/{leave_type_id}", status_code=204)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Deactivate a leave type; existing requests and balances are kept."""
    await leave_type_service.deactivate_leave_type(session, auth, leave_type_id)


# ---------------------------------------------------------------------------
# Workflow rules
# ---------------------------------------------------------------------------


@admin_router.post("/workflow-rules", response_model=WorkflowRuleResponse, status_code=201)
async def create_workflow_rule(
    payload: CreateWorkflowRuleRequest,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowRuleResponse:
    return await workflow_rule_service.create_workflow_rule(session, auth, payload)


@admin_router.get("/workflow-rules", response_model=WorkflowRuleListResponse)
async def list_workflow_rules(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowRuleListResponse:
    return await workflow_rule_service.list_workflow_rules(session, company_id)


@admin_router.get("/workflow-rules/{rule_id}", response_model=WorkflowRuleResponse)
async def get_workflow_rule(
    company_id: uuid.UUID,
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowRuleResponse:
    return await workflow_rule_service.get_workflow_rule(session, company_id, rule_id)


@admin_router.patch("/workflow-rules/{rule_id}", response_model=WorkflowRuleResponse)
async def update_workflow_rule(
    rule_id: uuid.UUID,
    payload: UpdateWorkflowRuleRequest,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowRuleResponse:
    return await workflow_rule_service.update_workflow_rule(session, auth, rule_id, payload)


@admin_router.delete("/workflow-rules/{rule_id}", status_code=204)
async def delete_workflow_rule(
    rule_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    await workflow_rule_service.delete_workflow_rule(session, auth, rule_id)
