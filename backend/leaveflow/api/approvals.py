# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leaveflow.api.deps import AuthDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.models.enums import Decision
from leaveflow.schemas.request import DecisionPayload, DecisionResponse, LeaveRequestListResponse
from leaveflow.services import approvals as approval_service

manager_router = APIRouter(
    prefix="/companies/{company_id}/manager/team",
    tags=["approvals"],
    dependencies=[Depends(validate_company_scope)],
)

executive_router = APIRouter(
    prefix="/companies/{company_id}/executive",
    tags=["approvals"],
    dependencies=[Depends(validate_company_scope)],
)


@manager_router.get("/pending-approvals", response_model=LeaveRequestListResponse)
async def list_pending_approvals(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """Requests waiting on the actor's decision."""
    return await approval_service.list_pending_approvals(session, auth, offset, limit)


@manager_router.post("/{request_id}/approve", response_model=DecisionResponse)
async def approve_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> DecisionResponse:
    payload = payload or DecisionPayload()
    return await approval_service.decide(
        session, auth, request_id, Decision.APPROVE, payload.comment, payload.signature
    )


@manager_router.post("/{request_id}/deny", response_model=DecisionResponse)
async def deny_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> DecisionResponse:
    """Reject; a non-empty comment is required."""
    return await approval_service.deny(session, auth, request_id, payload.comment if payload else None)


@executive_router.post("/{request_id}/approve", response_model=DecisionResponse)
async def executive_approve(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> DecisionResponse:
    """Approve as an executive; a peer executive may step in on another executive's request."""
    payload = payload or DecisionPayload()
    return await approval_service.decide(
        session,
        auth,
        request_id,
        Decision.APPROVE,
        payload.comment,
        payload.signature,
        allow_late_binding=True,
    )


@executive_router.post("/{request_id}/deny", response_model=DecisionResponse)
async def executive_deny(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> DecisionResponse:
    """Reject as an executive; a peer may also reverse an approved executive request."""
    return await approval_service.deny(
        session, auth, request_id, payload.comment if payload else None, allow_late_binding=True
    )
