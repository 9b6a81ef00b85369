# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from toil_engine.models.base import UUIDBase, now_utc
from toil_engine.models.enums import ProcessingStatus

_OPEN_RECORD = sa.text("status <> 'rejected'")


class ToilProcessingRecord(UUIDBase, table=True):
    """Month-end close-out of a user's TOIL balance. Kept forever as an audit trail."""

    __tablename__ = "toil_processing_record"
    __table_args__ = (
        sa.Index(
            "uq_processing_open_user_month",
            "user_id",
            "month",
            unique=True,
            postgresql_where=_OPEN_RECORD,
            sqlite_where=_OPEN_RECORD,
        ),
        sa.Index("ix_processing_status", "status"),
    )

    user_id: uuid.UUID = Field(index=True)
    month: str = Field(max_length=7)
    total_hours: float
    rollover_hours: float
    surplus_hours: float
    surplus_action: str | None = Field(default=None, max_length=20)
    status: str = Field(
        default=ProcessingStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"}
    )
    submitted_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    approver_id: uuid.UUID | None = None
    approved_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    original_records: list[str] = Field(default_factory=list, sa_type=sa.JSON)
