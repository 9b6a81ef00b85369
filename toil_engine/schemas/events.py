# ruff: noqa: TC001, TC003
from __future__ import annotations

import enum
import uuid
from datetime import UTC, date, datetime

from pydantic import BaseModel, Field

from toil_engine.models.enums import ActionType, MonthState, ProcessingStatus


class ChangeTopic(enum.StrEnum):
    """Topics published on the change notifier."""

    TOIL_UPDATED = "toil-updated"
    ACTION_TOGGLED = "action-toggled"
    APPROVAL_UPDATED = "approval-updated"
    MONTH_STATE_UPDATED = "toil-month-state-updated"
    MONTH_END_SUBMITTED = "toil-month-end-submitted"


def _now_utc() -> datetime:
    return datetime.now(UTC)


class ChangeEvent(BaseModel):
    """Base payload carried by every change notification."""

    user_id: uuid.UUID
    occurred_at: datetime = Field(default_factory=_now_utc)


class ToilUpdatedEvent(ChangeEvent):
    month_year: str
    accrued: float
    used: float
    remaining: float


class ActionToggledEvent(ChangeEvent):
    date: date
    action_type: ActionType
    active: bool
    entry_id: uuid.UUID | None = None


class ApprovalUpdatedEvent(ChangeEvent):
    record_id: uuid.UUID
    month: str
    status: ProcessingStatus
    approver_id: uuid.UUID | None = None


class MonthStateUpdatedEvent(ChangeEvent):
    month: str
    state: MonthState


class MonthEndSubmittedEvent(ChangeEvent):
    record_id: uuid.UUID
    month: str
    rollover_hours: float
    surplus_hours: float
