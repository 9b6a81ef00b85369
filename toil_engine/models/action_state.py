# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from toil_engine.models.base import UUIDBase, now_utc


class DayActionState(UUIDBase, table=True):
    """Persisted on/off state of one day-level action, with the entry it tracks."""

    __tablename__ = "day_action_state"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "date", "action_type", name="uq_action_state_user_date_type"),
    )

    user_id: uuid.UUID = Field(index=True)
    date: datetime.date
    action_type: str = Field(max_length=20)
    active: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    entry_id: uuid.UUID | None = None
    updated_at: datetime.datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
