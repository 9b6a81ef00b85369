"""Work schedule shapes and the scheduled-hours arithmetic built on them."""

# ruff: noqa: TC003
from __future__ import annotations

from collections.abc import Collection
from datetime import date, datetime, time
from typing import Self

from pydantic import BaseModel, Field, model_validator

# Used when a user has no schedule at all.
DEFAULT_SCHEDULED_HOURS = 7.6

# A TOIL day off always books a full standard day, short breaks included,
# whatever the user's schedule says for that day.
STANDARD_TOIL_DAY_HOURS = 9.0

LUNCH_BREAK_HOURS = 0.5
SMOKO_BREAK_HOURS = 0.25


class WorkDay(BaseModel):
    """Working window for one weekday and the unpaid breaks taken within it."""

    start_time: time
    end_time: time
    lunch: bool = False
    smoko: bool = False

    @model_validator(mode="after")
    def _validate_window(self) -> Self:
        if self.end_time <= self.start_time:
            msg = "end_time must be after start_time"
            raise ValueError(msg)
        return self

    @property
    def hours(self) -> float:
        anchor = date(2000, 1, 3)
        span = datetime.combine(anchor, self.end_time) - datetime.combine(anchor, self.start_time)
        hours = span.total_seconds() / 3600
        if self.lunch:
            hours -= LUNCH_BREAK_HOURS
        if self.smoko:
            hours -= SMOKO_BREAK_HOURS
        return max(hours, 0.0)


class WorkSchedule(BaseModel):
    """Weekly schedule keyed by weekday (0 = Monday). Missing weekdays are days off."""

    days: dict[int, WorkDay] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_weekdays(self) -> Self:
        for weekday in self.days:
            if not 0 <= weekday <= 6:
                msg = f"weekday {weekday} must be between 0 and 6"
                raise ValueError(msg)
        return self


def scheduled_hours_for(schedule: WorkSchedule | None, day: date) -> float:
    """Scheduled hours for a day; 0 for a rostered day off."""
    if schedule is None:
        return DEFAULT_SCHEDULED_HOURS
    work_day = schedule.days.get(day.weekday())
    return work_day.hours if work_day is not None else 0.0


def is_rostered_day_off(schedule: WorkSchedule | None, day: date) -> bool:
    """A weekday the schedule leaves empty."""
    if schedule is None or day.weekday() >= 5:
        return False
    return day.weekday() not in schedule.days


def is_special_day(schedule: WorkSchedule | None, day: date, holidays: Collection[date]) -> bool:
    """Weekend, public holiday or rostered day off."""
    return day.weekday() >= 5 or day in holidays or is_rostered_day_off(schedule, day)


def worked_break_hours(
    schedule: WorkSchedule | None,
    day: date,
    *,
    lunch_worked: bool,
    smoko_worked: bool,
) -> float:
    """Hours added back when the user worked through a scheduled break.

    Without a schedule both breaks are assumed to be part of the day.
    """
    if schedule is None:
        has_lunch = has_smoko = True
    else:
        work_day = schedule.days.get(day.weekday())
        if work_day is None:
            return 0.0
        has_lunch, has_smoko = work_day.lunch, work_day.smoko

    extra = 0.0
    if lunch_worked and has_lunch:
        extra += LUNCH_BREAK_HOURS
    if smoko_worked and has_smoko:
        extra += SMOKO_BREAK_HOURS
    return extra
