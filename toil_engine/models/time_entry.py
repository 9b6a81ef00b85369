# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from toil_engine.models.base import TimestampMixin, UUIDBase


class TimeEntry(UUIDBase, TimestampMixin, table=True):
    """A logged or synthetic block of hours on a single day."""

    __tablename__ = "time_entry"
    __table_args__ = (sa.Index("ix_time_entry_user_date_job", "user_id", "date", "job_number"),)

    user_id: uuid.UUID = Field(index=True)
    date: datetime.date
    hours: float
    job_number: str | None = Field(default=None, max_length=50)
    synthetic: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    description: str | None = Field(default=None, max_length=1000)
