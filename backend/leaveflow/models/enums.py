from __future__ import annotations

import enum


class UserRole(enum.StrEnum):
    """Organizational role of an actor, as reported by the user directory."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    DEPARTMENT_DIRECTOR = "DEPARTMENT_DIRECTOR"
    EXECUTIVE = "EXECUTIVE"
    HR = "HR"
    ADMIN = "ADMIN"


class RequestKind(enum.StrEnum):
    """Leave consumes a balance; work-from-home does not."""

    LEAVE = "LEAVE"
    WFH = "WFH"


class RequestStatus(enum.StrEnum):
    """State machine for leave and WFH requests."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ApprovalStatus(enum.StrEnum):
    """Status of a single approval record."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(enum.StrEnum):
    """An approver's decision."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ApproverRole(enum.StrEnum):
    """Abstract approval role, resolved to a concrete approver per request."""

    DIRECT_MANAGER = "DIRECT_MANAGER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    HR = "HR"
    EXECUTIVE = "EXECUTIVE"
    ANOTHER_EXECUTIVE = "ANOTHER_EXECUTIVE"


# Stored on approval records created on the fly by a peer executive.
PEER_EXECUTIVE_ROLE = "PEER_EXECUTIVE"


class LedgerBucket(enum.StrEnum):
    """Balance bucket that restored days are moved out of."""

    PENDING = "PENDING"
    USED = "USED"


class NotificationType(enum.StrEnum):
    """Kinds of notification sent to users."""

    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_REQUEST = "LEAVE_REQUEST"
    APPROVAL = "APPROVAL"
    LEAVE_BALANCE = "LEAVE_BALANCE"
    LEAVE_TYPE = "LEAVE_TYPE"
    WORKFLOW_RULE = "WORKFLOW_RULE"
    HOLIDAY = "HOLIDAY"
    ROLLOVER = "ROLLOVER"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    INITIALIZE = "INITIALIZE"
    ROLLOVER = "ROLLOVER"
    EXPIRE = "EXPIRE"
