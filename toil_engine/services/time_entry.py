from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from toil_engine.exceptions import NotFoundError, ValidationError
from toil_engine.models.enums import JobNumber
from toil_engine.models.time_entry import TimeEntry
from toil_engine.schemas.entry import EntryListResponse, EntryResponse
from toil_engine.services.accrual import accrue_daily_toil
from toil_engine.services.ledger_store import LedgerStore

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.schemas.entry import CreateEntryPayload

logger = logging.getLogger(__name__)

_RESERVED_JOB_NUMBERS = frozenset(j.value for j in JobNumber)


def _build_entry_response(entry: TimeEntry) -> EntryResponse:
    return EntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        date=entry.date,
        hours=entry.hours,
        job_number=entry.job_number,
        synthetic=entry.synthetic,
        description=entry.description,
        created_at=entry.created_at,
    )


def validate_hours(hours: float) -> None:
    if not 0 < hours <= 24:
        raise ValidationError("Hours must be greater than 0 and at most 24")


async def create_entry(
    session: AsyncSession,
    user_id: uuid.UUID,
    payload: CreateEntryPayload,
) -> EntryResponse:
    """Log worked hours and re-accrue the day's TOIL."""
    validate_hours(payload.hours)
    if payload.job_number and payload.job_number.upper() in _RESERVED_JOB_NUMBERS:
        raise ValidationError(f"Job number {payload.job_number} is reserved for day actions")

    store = LedgerStore(session)
    entry = TimeEntry(
        user_id=user_id,
        date=payload.date,
        hours=payload.hours,
        job_number=payload.job_number,
        description=payload.description,
    )
    await store.put(f"entry:{entry.id}", entry)
    await store.commit()
    logger.info("Logged %.2fh for user=%s on %s", entry.hours, user_id, entry.date)

    await accrue_daily_toil(session, user_id, entry.date)
    return _build_entry_response(entry)


async def list_entries(
    session: AsyncSession,
    user_id: uuid.UUID,
    start: date | None = None,
    end: date | None = None,
    offset: int = 0,
    limit: int = 100,
) -> EntryListResponse:
    """List a user's entries, synthetic ones included."""
    base_filter = [col(TimeEntry.user_id) == user_id]
    if start is not None:
        base_filter.append(col(TimeEntry.date) >= start)
    if end is not None:
        base_filter.append(col(TimeEntry.date) <= end)

    count_result = await session.execute(select(func.count()).select_from(TimeEntry).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(TimeEntry)
        .where(*base_filter)
        .order_by(col(TimeEntry.date), col(TimeEntry.created_at))
        .offset(offset)
        .limit(limit)
    )
    return EntryListResponse(
        items=[_build_entry_response(e) for e in result.scalars().all()],
        total=total,
    )


async def delete_entry(session: AsyncSession, user_id: uuid.UUID, entry_id: uuid.UUID) -> None:
    """Delete a logged entry and re-accrue its day."""
    store = LedgerStore(session)
    entry = await store.get(f"entry:{entry_id}")
    if entry is None or entry.user_id != user_id:
        raise NotFoundError("Time entry not found")
    if entry.synthetic:
        raise ValidationError("Synthetic entries are removed by switching their day action off")

    day = entry.date
    await store.delete(f"entry:{entry_id}")
    await store.commit()
    logger.info("Deleted entry=%s for user=%s on %s", entry_id, user_id, day)

    await accrue_daily_toil(session, user_id, day)
