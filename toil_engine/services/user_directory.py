# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from toil_engine.models.enums import UserRole
from toil_engine.services.schedule import WorkSchedule

APPROVER_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


class UserInfo(BaseModel):
    """User metadata from the user/role directory."""

    id: uuid.UUID
    name: str
    email: str | None = None
    fte: float = Field(default=1.0, ge=0, le=1.5)
    role: UserRole = UserRole.TEAM_MEMBER
    schedule: WorkSchedule | None = None


@runtime_checkable
class UserDirectory(Protocol):
    """Interface for the user/role directory."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch user metadata. Returns None if not found."""
        ...

    async def list_users(self) -> list[UserInfo]:
        """List all known users."""
        ...


class InMemoryUserDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}

    def seed(self, user: UserInfo) -> None:
        """Seed a user for testing."""
        self._users[user.id] = user

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        return self._users.get(user_id)

    async def list_users(self) -> list[UserInfo]:
        return list(self._users.values())


_user_directory: UserDirectory = InMemoryUserDirectory()


def get_user_directory() -> UserDirectory:
    """FastAPI dependency for the user directory."""
    return _user_directory


def set_user_directory(directory: UserDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _user_directory
    _user_directory = directory
