from fastapi import APIRouter

from leaveflow.api.admin import admin_router
from leaveflow.api.approvals import executive_router, manager_router
from leaveflow.api.balances import employee_balance_router
from leaveflow.api.holidays import holidays_router
from leaveflow.api.leave_requests import leave_requests_router, wfh_requests_router

api_router = APIRouter()
api_router.include_router(leave_requests_router)
api_router.include_router(wfh_requests_router)
api_router.include_router(manager_router)
api_router.include_router(executive_router)
api_router.include_router(employee_balance_router)
api_router.include_router(admin_router)
api_router.include_router(holidays_router)
