"""TOIL accrual engine: monthly summaries, month-end distribution and daily earnings.

The pure helpers at the top never touch the database. ``get_toil_summary``
and ``accrue_daily_toil`` go through a LedgerStore over the caller's session.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import date
from typing import TYPE_CHECKING

from toil_engine.exceptions import ValidationError
from toil_engine.models.enums import (
    ActionType,
    AuditAction,
    AuditEntityType,
    EmploymentType,
    ToilRecordStatus,
)
from toil_engine.models.toil import ToilRecord
from toil_engine.schemas.events import ChangeTopic, ToilUpdatedEvent
from toil_engine.schemas.toil import ToilDistribution, ToilRecordListResponse, ToilRecordResponse, TOILSummary
from toil_engine.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore
from toil_engine.services.notifier import get_notifier
from toil_engine.services.schedule import is_special_day, scheduled_hours_for, worked_break_hours
from toil_engine.services.user_directory import get_user_directory

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.models.time_entry import TimeEntry
    from toil_engine.models.toil import ToilUsage
    from toil_engine.schemas.toil import ToilThresholds
    from toil_engine.services.schedule import WorkSchedule

logger = logging.getLogger(__name__)

FLOAT_TOLERANCE = 1e-6

# Daily amounts at or below this are noise, not TOIL.
_MIN_TOIL_HOURS = 0.01

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def month_year_of(day: date) -> str:
    """Format a date as its YYYY-MM month."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month(month: str) -> date:
    """First day of a YYYY-MM month. Raises ValidationError when malformed."""
    match = _MONTH_RE.match(month or "")
    if match is None:
        raise ValidationError(f"Month must be formatted YYYY-MM, got {month!r}")
    return date(int(match.group(1)), int(match.group(2)), 1)


def first_day_of_next_month(month: str) -> date:
    start = parse_month(month)
    if start.month == 12:
        return date(start.year + 1, 1, 1)
    return date(start.year, start.month + 1, 1)


def round_to_quarter_hour(hours: float) -> float:
    """Round half up to the nearest 0.25h."""
    return math.floor(hours * 4 + 0.5) / 4


def employment_type_for(fte: float | None) -> EmploymentType:
    """Map a fractional FTE onto an employment type. Unknown FTE counts as casual."""
    fte = fte or 0.0
    if fte >= 0.8:
        return EmploymentType.FULL_TIME
    if fte >= 0.1:
        return EmploymentType.PART_TIME
    return EmploymentType.CASUAL


def threshold_for(employment_type: EmploymentType, thresholds: ToilThresholds) -> float:
    """Rollover cap for an employment type."""
    if employment_type == EmploymentType.FULL_TIME:
        return thresholds.full_time
    if employment_type == EmploymentType.PART_TIME:
        return thresholds.part_time
    return thresholds.casual


def summarize(
    user_id: uuid.UUID,
    month_year: str,
    records: Iterable[ToilRecord],
    usages: Iterable[ToilUsage],
) -> TOILSummary:
    """Sum active grants and usages that belong to month_year.

    Records of other months, and grants that are used or expired, are ignored.
    """
    accrued = sum(
        r.hours for r in records if r.month_year == month_year and r.status == ToilRecordStatus.ACTIVE.value
    )
    used = sum(u.hours for u in usages if u.month_year == month_year)
    return TOILSummary(
        user_id=user_id,
        month_year=month_year,
        accrued=round(accrued, 6),
        used=round(used, 6),
        remaining=round(accrued - used, 6),
    )


def distribute(summary: TOILSummary, threshold: float) -> ToilDistribution:
    """Split the remaining balance into rollover (up to threshold) and surplus.

    A negative balance has nothing to carry and distributes as 0 / 0.
    """
    if threshold < 0:
        raise ValidationError("TOIL threshold cannot be negative")

    remaining = max(summary.remaining, 0.0)
    if remaining <= threshold:
        return ToilDistribution(rollover_hours=remaining, surplus_hours=0.0)
    return ToilDistribution(rollover_hours=threshold, surplus_hours=remaining - threshold)


def calculate_daily_toil(
    entries: Iterable[TimeEntry],
    day: date,
    schedule: WorkSchedule | None,
    holidays: Collection[date] = (),
    *,
    lunch_worked: bool = False,
    smoko_worked: bool = False,
) -> float:
    """TOIL hours earned on one day.

    On weekends, holidays and rostered days off every hour worked counts.
    On other days only hours beyond the schedule count. Synthetic entries
    (sick, leave, TOIL taken) are never work.
    """
    worked = sum(e.hours for e in entries if e.date == day and not e.synthetic and (e.hours or 0) > 0)
    if worked <= 0:
        return 0.0

    worked += worked_break_hours(schedule, day, lunch_worked=lunch_worked, smoko_worked=smoko_worked)

    if is_special_day(schedule, day, holidays):
        earned = worked
    else:
        earned = max(0.0, worked - scheduled_hours_for(schedule, day))

    rounded = round_to_quarter_hour(earned)
    if rounded <= _MIN_TOIL_HOURS:
        return 0.0
    logger.debug("TOIL for %s: worked=%.2f earned=%.2f rounded=%.2f", day, worked, earned, rounded)
    return rounded


# ---------------------------------------------------------------------------
# Ledger-backed operations
# ---------------------------------------------------------------------------


async def get_toil_summary(session: AsyncSession, user_id: uuid.UUID, month_year: str) -> TOILSummary:
    """Current TOIL summary for a user's month."""
    parse_month(month_year)
    ledger = await LedgerStore(session).query_by_user_month(user_id, month_year)
    return summarize(user_id, month_year, ledger.toil_records, ledger.usages)


async def list_toil_records(session: AsyncSession, user_id: uuid.UUID, month_year: str) -> ToilRecordListResponse:
    """Every grant booked to a month, expired and used ones included."""
    parse_month(month_year)
    ledger = await LedgerStore(session).query_by_user_month(user_id, month_year)
    items = [
        ToilRecordResponse(
            id=r.id,
            user_id=r.user_id,
            date=r.date,
            hours=r.hours,
            month_year=r.month_year,
            entry_id=r.entry_id,
            status=ToilRecordStatus(r.status),
            rollover_from_id=r.rollover_from_id,
            created_at=r.created_at,
        )
        for r in ledger.toil_records
    ]
    return ToilRecordListResponse(items=items, total=len(items))


async def publish_toil_updated(session: AsyncSession, user_id: uuid.UUID, month_year: str) -> TOILSummary:
    """Recompute the month summary and announce it."""
    summary = await get_toil_summary(session, user_id, month_year)
    await get_notifier().publish(
        ChangeTopic.TOIL_UPDATED,
        ToilUpdatedEvent(
            user_id=user_id,
            month_year=month_year,
            accrued=summary.accrued,
            used=summary.used,
            remaining=summary.remaining,
        ),
    )
    return summary


async def accrue_daily_toil(
    session: AsyncSession,
    user_id: uuid.UUID,
    day: date,
    *,
    today: date | None = None,
) -> ToilRecord | None:
    """Bring the day's TOIL grant in line with the hours logged for it.

    An unchanged grant is kept. A changed one is expired and replaced, since
    grants are immutable. Days in the future are not complete yet and never
    accrue. Returns the active grant for the day, if any.
    """
    if today is None:
        today = date.today()
    if day > today:
        logger.debug("Skipping TOIL accrual for future day %s", day)
        return None

    store = LedgerStore(session)
    user = await get_user_directory().get_user(user_id)
    schedule = user.schedule if user is not None else None

    entries = await store.query_entries_by_user_and_date(user_id, day)
    holidays = await store.query_holiday_dates(day, day)
    actions = {state.action_type: state.active for state in await store.query_action_states(user_id, day)}

    hours = calculate_daily_toil(
        entries,
        day,
        schedule,
        holidays,
        lunch_worked=actions.get(ActionType.LUNCH.value, False),
        smoko_worked=actions.get(ActionType.SMOKO.value, False),
    )

    existing = [
        r
        for r in await store.query_toil_records_for_day(user_id, day)
        if r.status == ToilRecordStatus.ACTIVE.value and r.rollover_from_id is None
    ]
    if len(existing) == 1 and abs(existing[0].hours - hours) < FLOAT_TOLERANCE:
        return existing[0]
    if not existing and hours <= 0:
        return None

    for record in existing:
        before = model_to_audit_dict(record)
        record.status = ToilRecordStatus.EXPIRED.value
        await store.put(f"toilrecord:{record.id}", record)
        write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.TOIL_RECORD,
            entity_id=record.id,
            action=AuditAction.EXPIRE,
            before_json=before,
            after_json=model_to_audit_dict(record),
        )

    grant: ToilRecord | None = None
    if hours > 0:
        source = next((e for e in reversed(entries) if not e.synthetic), None)
        grant = ToilRecord(
            user_id=user_id,
            date=day,
            hours=hours,
            month_year=month_year_of(day),
            entry_id=source.id if source is not None else None,
        )
        await store.put(f"toilrecord:{grant.id}", grant)
        write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.TOIL_RECORD,
            entity_id=grant.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(grant),
        )

    await store.commit()
    logger.info("TOIL for user=%s day=%s now %.2fh (replaced %d grant(s))", user_id, day, hours, len(existing))
    await publish_toil_updated(session, user_id, month_year_of(day))
    return grant
