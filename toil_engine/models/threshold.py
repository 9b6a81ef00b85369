# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from toil_engine.models.base import now_utc

THRESHOLD_ROW_ID = 1


class ToilThresholdSetting(SQLModel, table=True):
    """Rollover caps in hours per employment type. A single row."""

    __tablename__ = "toil_threshold_setting"

    id: int = Field(default=THRESHOLD_ROW_ID, primary_key=True)
    full_time: float
    part_time: float
    casual: float
    updated_by: uuid.UUID | None = None
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
