# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from leaveflow.exceptions import NotAuthorized, Unauthenticated
from leaveflow.models.enums import UserRole
from leaveflow.schemas.auth import AuthContext


def _parse_uuid(value: str | None, header: str) -> uuid.UUID:
    if not value:
        raise Unauthenticated(f"Missing {header} header")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise Unauthenticated(f"Malformed {header} header") from None


async def get_auth_context(
    x_company_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_role: str | None = Header(default=None),
) -> AuthContext:
    """Build the actor from the gateway headers. Anything missing is a 401."""
    company_id = _parse_uuid(x_company_id, "X-Company-Id")
    user_id = _parse_uuid(x_user_id, "X-User-Id")
    try:
        role = UserRole(x_role.upper()) if x_role else UserRole.EMPLOYEE
    except ValueError:
        raise Unauthenticated(f"Unknown role {x_role!r}") from None
    return AuthContext(company_id=company_id, user_id=user_id, role=role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require an ADMIN or HR actor."""
    if not auth.is_admin:
        raise NotAuthorized("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_company_scope(
    company_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Ensure the path company_id matches the auth header company_id."""
    if company_id != auth.company_id:
        raise NotAuthorized("Company ID mismatch")
    return auth
