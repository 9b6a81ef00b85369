# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from toil_engine.models.base import TimestampMixin, UUIDBase
from toil_engine.models.enums import ToilRecordStatus


class ToilRecord(UUIDBase, TimestampMixin, table=True):
    """An accrual grant. Immutable apart from its status."""

    __tablename__ = "toil_record"
    __table_args__ = (sa.Index("ix_toil_record_user_month", "user_id", "month_year"),)

    user_id: uuid.UUID = Field(index=True)
    date: datetime.date
    hours: float
    month_year: str = Field(max_length=7)
    entry_id: uuid.UUID | None = None
    status: str = Field(
        default=ToilRecordStatus.ACTIVE, max_length=20, sa_column_kwargs={"server_default": "active"}
    )
    rollover_from_id: uuid.UUID | None = Field(default=None, unique=True)


class ToilUsage(UUIDBase, TimestampMixin, table=True):
    """Consumption of TOIL, tied to the synthetic entry that marks the day off."""

    __tablename__ = "toil_usage"
    __table_args__ = (sa.Index("ix_toil_usage_user_month", "user_id", "month_year"),)

    user_id: uuid.UUID = Field(index=True)
    date: datetime.date
    hours: float
    entry_id: uuid.UUID = Field(index=True)
    month_year: str = Field(max_length=7)
