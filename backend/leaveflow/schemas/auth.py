# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leaveflow.models.enums import UserRole


class AuthContext(BaseModel):
    """The authenticated actor, as supplied by the gateway headers."""

    company_id: uuid.UUID
    user_id: uuid.UUID
    role: UserRole = UserRole.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.HR)
