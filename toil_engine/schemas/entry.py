# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class CreateEntryPayload(BaseModel):
    """Hours worked on one day."""

    date: date
    hours: float = Field(gt=0, le=24)
    job_number: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=1000)


class EntryResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    date: date
    hours: float
    job_number: str | None
    synthetic: bool
    description: str | None
    created_at: datetime


class EntryListResponse(BaseModel):
    items: list[EntryResponse]
    total: int
