# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leaveflow.models.enums import UserRole


class UserInfo(BaseModel):
    """User record from the directory / auth provider."""

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    email: str
    role: UserRole
    department: str | None = None
    manager_id: uuid.UUID | None = None
    director_id: uuid.UUID | None = None
    is_active: bool = True


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the user directory."""

    async def get_user(self, company_id: uuid.UUID, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch a user. Returns None if not found."""
        ...

    async def find_active_by_role(
        self,
        company_id: uuid.UUID,
        role: UserRole,
        exclude_ids: Iterable[uuid.UUID] = (),
    ) -> UserInfo | None:
        """Return any active user holding ``role``, skipping ``exclude_ids``."""
        ...

    async def list_users(self, company_id: uuid.UUID) -> list[UserInfo]:
        """List all users of a company."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[tuple[uuid.UUID, uuid.UUID], UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[(user.company_id, user.id)] = user

    async def get_user(self, company_id: uuid.UUID, user_id: uuid.UUID) -> UserInfo | None:
        return self._users.get((company_id, user_id))

    async def find_active_by_role(
        self,
        company_id: uuid.UUID,
        role: UserRole,
        exclude_ids: Iterable[uuid.UUID] = (),
    ) -> UserInfo | None:
        excluded = set(exclude_ids)
        # Insertion order keeps the pick deterministic.
        for user in self._users.values():
            if user.company_id == company_id and user.role == role and user.is_active and user.id not in excluded:
                return user
        return None

    async def list_users(self, company_id: uuid.UUID) -> list[UserInfo]:
        return [u for u in self._users.values() if u.company_id == company_id]


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the user directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
