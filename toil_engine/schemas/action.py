# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from toil_engine.models.enums import ActionType

CREATION_ERROR = "CreationError"
REMOVAL_ERROR = "RemovalError"


class TogglePayload(BaseModel):
    """Desired state of one day-level action."""

    date: date
    action_type: ActionType
    active: bool


class ToggleResult(BaseModel):
    """Outcome of a toggle. Failures are reported here rather than raised."""

    success: bool
    active: bool
    entry_id: uuid.UUID | None = None
    error: str | None = None
    dropped: bool = False


class DayActionResponse(BaseModel):
    action_type: ActionType
    active: bool
    entry_id: uuid.UUID | None = None


class DayActionsResponse(BaseModel):
    user_id: uuid.UUID
    date: date
    actions: list[DayActionResponse]
