# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from toil_engine.models.enums import UserRole


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: UserRole = UserRole.TEAM_MEMBER
