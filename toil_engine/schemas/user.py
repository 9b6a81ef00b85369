# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from toil_engine.models.enums import EmploymentType, UserRole
from toil_engine.services.schedule import WorkSchedule


class UpsertUserPayload(BaseModel):
    """Create or replace a user in the directory."""

    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    fte: float = Field(default=1.0, ge=0, le=1.5)
    role: UserRole = UserRole.TEAM_MEMBER
    schedule: WorkSchedule | None = None


class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str | None
    fte: float
    role: UserRole
    employment_type: EmploymentType
    schedule: WorkSchedule | None
