"""Public holidays. Every hour worked on one earns TOIL."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from toil_engine.exceptions import AppError, KeyConflictError, NotFoundError
from toil_engine.models.enums import AuditAction, AuditEntityType
from toil_engine.models.holiday import PublicHoliday
from toil_engine.schemas.holiday import HolidayListResponse, HolidayResponse
from toil_engine.services.accrual import accrue_daily_toil
from toil_engine.services.audit import model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.schemas.auth import AuthContext
    from toil_engine.schemas.holiday import CreateHolidayRequest

logger = logging.getLogger(__name__)


def _build_holiday_response(holiday: PublicHoliday) -> HolidayResponse:
    return HolidayResponse(id=holiday.id, date=holiday.date, name=holiday.name)


async def _reaccrue_day(store: LedgerStore, day: date) -> int:
    """Recompute the day's TOIL for everyone who logged hours on it."""
    user_ids = await store.users_who_worked_on(day)
    for user_id in user_ids:
        await accrue_daily_toil(store.session, user_id, day)
    return len(user_ids)


async def create_holiday(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    store = LedgerStore(session)
    holiday = PublicHoliday(date=payload.date, name=payload.name)
    try:
        await store.put(f"holiday:{holiday.id}", holiday)
    except KeyConflictError:
        raise AppError(f"A holiday already exists on {payload.date}", status_code=409) from None

    write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(holiday),
    )
    await store.commit()

    affected = await _reaccrue_day(store, holiday.date)
    logger.info("Added holiday %s on %s, re-accrued TOIL for %d user(s)", holiday.name, holiday.date, affected)
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> HolidayListResponse:
    """List public holidays, optionally for one calendar year."""
    base_filter = []
    if year is not None:
        base_filter = [
            col(PublicHoliday.date) >= date(year, 1, 1),
            col(PublicHoliday.date) <= date(year, 12, 31),
        ]

    count_result = await session.execute(select(func.count()).select_from(PublicHoliday).where(*base_filter))
    result = await session.execute(
        select(PublicHoliday).where(*base_filter).order_by(col(PublicHoliday.date)).offset(offset).limit(limit)
    )
    return HolidayListResponse(
        items=[_build_holiday_response(h) for h in result.scalars().all()],
        total=count_result.scalar_one(),
    )


async def delete_holiday(
    session: AsyncSession,
    auth: AuthContext,
    holiday_id: uuid.UUID,
) -> None:
    """Delete a public holiday. TOIL already earned on it is recomputed."""
    store = LedgerStore(session)
    holiday = await store.get(f"holiday:{holiday_id}")
    if holiday is None:
        raise NotFoundError("Holiday not found")

    write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(holiday),
    )
    day = holiday.date
    await store.delete(f"holiday:{holiday_id}")
    await store.commit()

    affected = await _reaccrue_day(store, day)
    logger.info("Removed holiday on %s, re-accrued TOIL for %d user(s)", day, affected)
