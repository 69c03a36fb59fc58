# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leaveflow.api.deps import AuthDep, validate_company_scope
from leaveflow.db import SessionDep
from leaveflow.models.enums import RequestKind, RequestStatus
from leaveflow.schemas.request import (
    CreateLeaveRequestPayload,
    CreateWfhRequestPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from leaveflow.services import requests as request_service

leave_requests_router = APIRouter(
    prefix="/companies/{company_id}/leave-requests",
    tags=["leave-requests"],
    dependencies=[Depends(validate_company_scope)],
)

wfh_requests_router = APIRouter(
    prefix="/companies/{company_id}/wfh-requests",
    tags=["wfh-requests"],
    dependencies=[Depends(validate_company_scope)],
)


@leave_requests_router.post("", response_model=LeaveRequestResponse)
async def create_leave_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a leave request; the response carries its approval chain."""
    return await request_service.create_leave_request(session, auth, payload)


@leave_requests_router.get("", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    year: int | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    return await request_service.list_requests(
        session, auth, kind=RequestKind.LEAVE, status=status_filter, year=year, offset=offset, limit=limit
    )


@leave_requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    return await request_service.get_request(session, auth, request_id)


@leave_requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Cancel a pending request (requester or admin)."""
    return await request_service.cancel_request(session, auth, request_id)


@wfh_requests_router.post("", response_model=LeaveRequestResponse)
async def create_wfh_request(
    payload: CreateWfhRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a work-from-home request."""
    return await request_service.create_wfh_request(session, auth, payload)


@wfh_requests_router.get("", response_model=LeaveRequestListResponse)
async def list_wfh_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    year: int | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    return await request_service.list_requests(
        session, auth, kind=RequestKind.WFH, status=status_filter, year=year, offset=offset, limit=limit
    )


@wfh_requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_wfh_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    return await request_service.cancel_request(session, auth, request_id)
