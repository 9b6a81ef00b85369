# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from toil_engine.models.enums import MonthState, ProcessingStatus, SurplusAction, ToilRecordStatus

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


class TOILSummary(BaseModel):
    """Accrued, used and remaining TOIL hours for one user and month."""

    user_id: uuid.UUID
    month_year: str
    accrued: float
    used: float
    remaining: float


class ToilDistribution(BaseModel):
    """Split of a remaining balance at month end."""

    rollover_hours: float = Field(ge=0)
    surplus_hours: float = Field(ge=0)


class ToilThresholds(BaseModel):
    """Rollover caps in hours per employment type."""

    full_time: float = Field(ge=0)
    part_time: float = Field(ge=0)
    casual: float = Field(ge=0)


class ToilRecordResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    date: date
    hours: float
    month_year: str
    entry_id: uuid.UUID | None
    status: ToilRecordStatus
    rollover_from_id: uuid.UUID | None
    created_at: datetime


class ToilRecordListResponse(BaseModel):
    items: list[ToilRecordResponse]
    total: int


# ---------------------------------------------------------------------------
# Month-end processing
# ---------------------------------------------------------------------------


class SubmitProcessingPayload(BaseModel):
    """Request body for closing out a month."""

    month: str = Field(pattern=MONTH_PATTERN)
    surplus_action: SurplusAction | None = None


class ProcessingRecordResponse(BaseModel):
    """Response schema for a month-end processing record."""

    id: uuid.UUID
    user_id: uuid.UUID
    month: str
    total_hours: float
    rollover_hours: float
    surplus_hours: float
    surplus_action: SurplusAction | None
    status: ProcessingStatus
    submitted_at: datetime
    approver_id: uuid.UUID | None
    approved_at: datetime | None
    original_records: list[uuid.UUID]


class ProcessingListResponse(BaseModel):
    items: list[ProcessingRecordResponse]
    total: int


class MonthStateResponse(BaseModel):
    """Where a user's month stands in the close-out workflow."""

    user_id: uuid.UUID
    month: str
    state: MonthState
    processable: bool
    record: ProcessingRecordResponse | None


class CleanupResponse(BaseModel):
    user_id: uuid.UUID
    removed: int
