from sqlmodel import SQLModel

from leaveflow.models.approval import ApprovalRecord
from leaveflow.models.audit import AuditLog
from leaveflow.models.balance import LeaveBalance
from leaveflow.models.base import TimestampMixin, UUIDBase
from leaveflow.models.enums import (
    ApprovalStatus,
    ApproverRole,
    AuditAction,
    AuditEntityType,
    Decision,
    LedgerBucket,
    NotificationType,
    RequestKind,
    RequestStatus,
    UserRole,
)
from leaveflow.models.holiday import CompanyHoliday
from leaveflow.models.leave_type import LeaveType
from leaveflow.models.request import LeaveRequest
from leaveflow.models.rollover import RolloverRun
from leaveflow.models.workflow_rule import WorkflowRule

__all__ = [
    "ApprovalRecord",
    "ApprovalStatus",
    "ApproverRole",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "CompanyHoliday",
    "Decision",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "LedgerBucket",
    "NotificationType",
    "RequestKind",
    "RequestStatus",
    "RolloverRun",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UserRole",
    "WorkflowRule",
]
