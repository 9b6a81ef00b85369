# ruff: noqa: TC003
from __future__ import annotations

import datetime

from sqlmodel import Field

from toil_engine.models.base import UUIDBase


class PublicHoliday(UUIDBase, table=True):
    """A holiday on which every hour worked earns TOIL."""

    __tablename__ = "public_holiday"

    date: datetime.date = Field(unique=True)
    name: str = Field(max_length=255)
