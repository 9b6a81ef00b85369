"""Tests for TOIL summaries, month-end distribution and daily accrual."""

from __future__ import annotations

import uuid
from datetime import date, time
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlmodel import col

from toil_engine.exceptions import ValidationError
from toil_engine.models.audit import AuditLog
from toil_engine.models.enums import EmploymentType, ToilRecordStatus
from toil_engine.models.holiday import PublicHoliday
from toil_engine.models.time_entry import TimeEntry
from toil_engine.models.toil import ToilRecord, ToilUsage
from toil_engine.schemas.entry import CreateEntryPayload
from toil_engine.schemas.events import ChangeTopic
from toil_engine.schemas.toil import TOILSummary, ToilThresholds
from toil_engine.services import accrual as accrual_service
from toil_engine.services import time_entry as entry_service
from toil_engine.services.accrual import (
    calculate_daily_toil,
    distribute,
    employment_type_for,
    month_year_of,
    parse_month,
    round_to_quarter_hour,
    summarize,
    threshold_for,
)
from toil_engine.services.schedule import WorkDay, WorkSchedule
from toil_engine.services.user_directory import UserInfo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.services.notifier import ChangeNotifier
    from toil_engine.services.user_directory import InMemoryUserDirectory

USER_ID = uuid.uuid4()
MONDAY = date(2025, 3, 3)
TUESDAY = date(2025, 3, 4)
SATURDAY = date(2025, 3, 8)
THRESHOLDS = ToilThresholds(full_time=8.0, part_time=6.0, casual=4.0)


def _summary(remaining: float) -> TOILSummary:
    return TOILSummary(user_id=USER_ID, month_year="2025-03", accrued=remaining, used=0.0, remaining=remaining)


def _entry(day: date, hours: float, *, synthetic: bool = False) -> TimeEntry:
    job_number = "TOIL" if synthetic else "J-1"
    return TimeEntry(user_id=USER_ID, date=day, hours=hours, synthetic=synthetic, job_number=job_number)


def _record(hours: float, month: str = "2025-03", status: ToilRecordStatus = ToilRecordStatus.ACTIVE) -> ToilRecord:
    return ToilRecord(user_id=USER_ID, date=parse_month(month), hours=hours, month_year=month, status=status)


def _usage(hours: float, month: str = "2025-03") -> ToilUsage:
    return ToilUsage(user_id=USER_ID, date=parse_month(month), hours=hours, entry_id=uuid.uuid4(), month_year=month)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_summarize_counts_only_active_records_of_the_month() -> None:
    records = [
        _record(5.0),
        _record(2.5),
        _record(4.0, status=ToilRecordStatus.EXPIRED),
        _record(1.0, status=ToilRecordStatus.USED),
        _record(9.0, month="2025-02"),
    ]
    usages = [_usage(1.5), _usage(3.0, month="2025-04")]

    summary = summarize(USER_ID, "2025-03", records, usages)

    assert summary.accrued == 7.5
    assert summary.used == 1.5
    assert summary.remaining == 6.0


def test_summarize_empty_month() -> None:
    summary = summarize(USER_ID, "2025-03", [], [])
    assert (summary.accrued, summary.used, summary.remaining) == (0.0, 0.0, 0.0)


def test_distribute_caps_rollover_at_threshold() -> None:
    result = distribute(_summary(14.5), 8.0)
    assert result.rollover_hours == 8.0
    assert result.surplus_hours == 6.5


def test_distribute_under_threshold_rolls_everything_over() -> None:
    result = distribute(_summary(5.25), 8.0)
    assert result.rollover_hours == 5.25
    assert result.surplus_hours == 0.0


def test_distribute_exactly_at_threshold() -> None:
    result = distribute(_summary(8.0), 8.0)
    assert result.rollover_hours == 8.0
    assert result.surplus_hours == 0.0


@pytest.mark.parametrize("remaining", [0.0, 0.25, 3.3, 7.999999, 8.0, 8.000001, 12.75, 100.0])
@pytest.mark.parametrize("threshold", [0.0, 4.0, 8.0, 10.0])
def test_distribute_parts_add_up_to_remaining(remaining: float, threshold: float) -> None:
    result = distribute(_summary(remaining), threshold)
    assert result.rollover_hours >= 0
    assert result.surplus_hours >= 0
    assert result.rollover_hours <= threshold
    assert abs(result.rollover_hours + result.surplus_hours - remaining) < 1e-6


def test_distribute_negative_balance_has_nothing_to_carry() -> None:
    result = distribute(_summary(-3.0), 8.0)
    assert result.rollover_hours == 0.0
    assert result.surplus_hours == 0.0


def test_distribute_rejects_negative_threshold() -> None:
    with pytest.raises(ValidationError):
        distribute(_summary(4.0), -1.0)


@pytest.mark.parametrize(
    ("fte", "expected"),
    [
        (1.0, EmploymentType.FULL_TIME),
        (0.8, EmploymentType.FULL_TIME),
        (0.79, EmploymentType.PART_TIME),
        (0.1, EmploymentType.PART_TIME),
        (0.09, EmploymentType.CASUAL),
        (0.0, EmploymentType.CASUAL),
        (None, EmploymentType.CASUAL),
    ],
)
def test_employment_type_for(fte: float | None, expected: EmploymentType) -> None:
    assert employment_type_for(fte) == expected


def test_threshold_for_each_employment_type() -> None:
    assert threshold_for(EmploymentType.FULL_TIME, THRESHOLDS) == 8.0
    assert threshold_for(EmploymentType.PART_TIME, THRESHOLDS) == 6.0
    assert threshold_for(EmploymentType.CASUAL, THRESHOLDS) == 4.0


@pytest.mark.parametrize(
    ("hours", "expected"),
    [(0.0, 0.0), (0.1, 0.0), (0.125, 0.25), (2.4, 2.5), (2.6, 2.5), (2.9, 3.0), (7.875, 8.0)],
)
def test_round_to_quarter_hour(hours: float, expected: float) -> None:
    assert round_to_quarter_hour(hours) == expected


def test_parse_month_and_month_year_of() -> None:
    assert parse_month("2025-12") == date(2025, 12, 1)
    assert month_year_of(date(2025, 1, 31)) == "2025-01"
    for bad in ["2025-13", "2025-1", "25-01", "", "2025/01"]:
        with pytest.raises(ValidationError):
            parse_month(bad)


def test_daily_toil_counts_hours_beyond_default_schedule() -> None:
    # 10h worked against the 7.6h default leaves 2.4h, rounded to 2.5h.
    assert calculate_daily_toil([_entry(MONDAY, 10.0)], MONDAY, None) == 2.5


def test_daily_toil_ignores_synthetic_entries_and_other_days() -> None:
    entries = [_entry(MONDAY, 9.0, synthetic=True), _entry(TUESDAY, 12.0)]
    assert calculate_daily_toil(entries, MONDAY, None) == 0.0


def test_daily_toil_weekend_and_holiday_count_every_hour() -> None:
    assert calculate_daily_toil([_entry(SATURDAY, 4.0)], SATURDAY, None) == 4.0
    assert calculate_daily_toil([_entry(TUESDAY, 3.0)], TUESDAY, None, {TUESDAY}) == 3.0


def test_daily_toil_worked_breaks_add_to_hours_worked() -> None:
    # 10h + 0.5h lunch + 0.25h smoko - 7.6h = 3.15h -> 3.25h
    result = calculate_daily_toil([_entry(MONDAY, 10.0)], MONDAY, None, lunch_worked=True, smoko_worked=True)
    assert result == 3.25


def test_daily_toil_uses_the_user_schedule() -> None:
    schedule = WorkSchedule(
        days={
            0: WorkDay(start_time=time(8, 0), end_time=time(16, 45), lunch=True, smoko=True),
        }
    )
    # Monday is scheduled for 8h; Tuesday is a rostered day off.
    assert calculate_daily_toil([_entry(MONDAY, 9.0)], MONDAY, schedule) == 1.0
    assert calculate_daily_toil([_entry(TUESDAY, 2.0)], TUESDAY, schedule) == 2.0


def test_daily_toil_short_day_earns_nothing() -> None:
    assert calculate_daily_toil([_entry(MONDAY, 6.0)], MONDAY, None) == 0.0


# ---------------------------------------------------------------------------
# Ledger-backed accrual
# ---------------------------------------------------------------------------


async def _active_records(session: AsyncSession, day: date) -> list[ToilRecord]:
    result = await session.execute(
        select(ToilRecord).where(
            col(ToilRecord.user_id) == USER_ID,
            col(ToilRecord.date) == day,
            col(ToilRecord.status) == ToilRecordStatus.ACTIVE.value,
        )
    )
    return list(result.scalars().all())


async def _log(session: AsyncSession, day: date, hours: float) -> uuid.UUID:
    entry = await entry_service.create_entry(session, USER_ID, CreateEntryPayload(date=day, hours=hours))
    return entry.id


async def test_logging_overtime_accrues_toil(db_session: AsyncSession) -> None:
    await _log(db_session, MONDAY, 10.0)

    records = await _active_records(db_session, MONDAY)
    assert len(records) == 1
    assert records[0].hours == 2.5
    assert records[0].month_year == "2025-03"

    summary = await accrual_service.get_toil_summary(db_session, USER_ID, "2025-03")
    assert summary.accrued == 2.5
    assert summary.remaining == 2.5


async def test_more_hours_expire_and_replace_the_grant(db_session: AsyncSession) -> None:
    await _log(db_session, MONDAY, 10.0)
    await _log(db_session, MONDAY, 1.0)

    result = await db_session.execute(select(ToilRecord).where(col(ToilRecord.date) == MONDAY))
    statuses = sorted((r.status, r.hours) for r in result.scalars().all())
    assert statuses == [("active", 3.5), ("expired", 2.5)]

    summary = await accrual_service.get_toil_summary(db_session, USER_ID, "2025-03")
    assert summary.accrued == 3.5

    audit = await db_session.execute(select(AuditLog).where(col(AuditLog.action) == "EXPIRE"))
    assert len(audit.scalars().all()) == 1


async def test_unchanged_day_keeps_its_grant(db_session: AsyncSession) -> None:
    await _log(db_session, MONDAY, 10.0)
    first = await _active_records(db_session, MONDAY)

    await accrual_service.accrue_daily_toil(db_session, USER_ID, MONDAY)

    assert [r.id for r in await _active_records(db_session, MONDAY)] == [first[0].id]


async def test_deleting_the_entry_expires_the_grant(db_session: AsyncSession) -> None:
    entry_id = await _log(db_session, MONDAY, 10.0)
    await entry_service.delete_entry(db_session, USER_ID, entry_id)

    assert await _active_records(db_session, MONDAY) == []
    summary = await accrual_service.get_toil_summary(db_session, USER_ID, "2025-03")
    assert summary.accrued == 0.0


async def test_holiday_work_earns_every_hour(db_session: AsyncSession) -> None:
    db_session.add(PublicHoliday(date=TUESDAY, name="Founders Day"))
    await db_session.commit()

    await _log(db_session, TUESDAY, 3.0)

    records = await _active_records(db_session, TUESDAY)
    assert [r.hours for r in records] == [3.0]


async def test_schedule_from_directory_is_used(
    db_session: AsyncSession,
    user_directory: InMemoryUserDirectory,
) -> None:
    user_directory.seed(
        UserInfo(
            id=USER_ID,
            name="Part Timer",
            fte=0.5,
            schedule=WorkSchedule(days={0: WorkDay(start_time=time(9, 0), end_time=time(13, 0))}),
        )
    )

    await _log(db_session, MONDAY, 5.0)

    records = await _active_records(db_session, MONDAY)
    assert [r.hours for r in records] == [1.0]


async def test_future_days_never_accrue(db_session: AsyncSession) -> None:
    db_session.add(TimeEntry(user_id=USER_ID, date=MONDAY, hours=12.0))
    await db_session.commit()

    grant = await accrual_service.accrue_daily_toil(db_session, USER_ID, MONDAY, today=date(2025, 3, 1))

    assert grant is None
    assert await _active_records(db_session, MONDAY) == []


async def test_accrual_publishes_toil_updated(db_session: AsyncSession, notifier: ChangeNotifier) -> None:
    received = []
    notifier.subscribe(ChangeTopic.TOIL_UPDATED, received.append)

    await _log(db_session, SATURDAY, 2.0)

    assert len(received) == 1
    assert received[0].month_year == "2025-03"
    assert received[0].accrued == 2.0


def test_entry_hours_are_validated() -> None:
    with pytest.raises(ValidationError):
        entry_service.validate_hours(0)
    with pytest.raises(ValidationError):
        entry_service.validate_hours(24.5)
    entry_service.validate_hours(24)


async def test_list_toil_records_includes_expired(db_session: AsyncSession) -> None:
    await _log(db_session, MONDAY, 10.0)
    await _log(db_session, MONDAY, 2.0)

    listing = await accrual_service.list_toil_records(db_session, USER_ID, "2025-03")

    assert listing.total == 2
    assert {r.status for r in listing.items} == {ToilRecordStatus.ACTIVE, ToilRecordStatus.EXPIRED}
