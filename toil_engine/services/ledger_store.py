"""Keyed access to every persisted ledger entity.

Keys are namespaced strings:

    toil:<userId>:<month>                    open (non-rejected) processing record
    toilprocessing:<id>                      processing record by id
    toilrecord:<id>                          accrual grant
    toilusage:<id>                           TOIL consumption
    entry:<id>                               time entry (logged or synthetic)
    action:<userId>:<date>:<actionType>      day action toggle state
    holiday:<id>                             public holiday

Writes are flushed straight away so the calling session reads its own
writes; ``commit`` publishes them to other sessions and processes. Any
database failure rolls the session back and surfaces as ``StorageError``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, NoReturn

from sqlalchemy import delete as sa_delete
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from toil_engine.exceptions import KeyConflictError, StorageError, ValidationError
from toil_engine.models.action_state import DayActionState
from toil_engine.models.enums import ProcessingStatus
from toil_engine.models.holiday import PublicHoliday
from toil_engine.models.processing import ToilProcessingRecord
from toil_engine.models.time_entry import TimeEntry
from toil_engine.models.toil import ToilRecord, ToilUsage

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

_ID_NAMESPACES: dict[str, type[SQLModel]] = {
    "toilprocessing": ToilProcessingRecord,
    "toilrecord": ToilRecord,
    "toilusage": ToilUsage,
    "entry": TimeEntry,
    "holiday": PublicHoliday,
}


@dataclass
class MonthLedger:
    """Everything recorded for one user in one month."""

    user_id: uuid.UUID
    month_year: str
    toil_records: list[ToilRecord] = field(default_factory=list)
    usages: list[ToilUsage] = field(default_factory=list)
    processing_records: list[ToilProcessingRecord] = field(default_factory=list)


def processing_key(user_id: uuid.UUID, month: str) -> str:
    return f"toil:{user_id}:{month}"


def action_key(user_id: uuid.UUID, day: date, action_type: str) -> str:
    return f"action:{user_id}:{day.isoformat()}:{action_type}"


def key_for(record: SQLModel) -> str:
    """Derive the storage key a record lives under."""
    if isinstance(record, ToilProcessingRecord):
        return processing_key(record.user_id, record.month)
    if isinstance(record, DayActionState):
        return action_key(record.user_id, record.date, record.action_type)
    for namespace, model in _ID_NAMESPACES.items():
        if isinstance(record, model):
            return f"{namespace}:{record.id}"  # ty: ignore[unresolved-attribute]
    msg = f"No storage namespace for {type(record).__name__}"
    raise ValidationError(msg)


def _parse_uuid(value: str, key: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError(f"Malformed storage key: {key}") from None


def _parse_key(key: str) -> tuple[str, list[str]]:
    namespace, _, rest = key.partition(":")
    if not rest:
        raise ValidationError(f"Malformed storage key: {key}")
    return namespace, rest.split(":")


class LedgerStore:
    """Atomic per-key reads and writes over one database session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Keyed operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Return the record stored under key, or None."""
        namespace, parts = _parse_key(key)

        if namespace == "toil" and len(parts) == 2:
            user_id = _parse_uuid(parts[0], key)
            return await self._scalar_one_or_none(
                select(ToilProcessingRecord).where(
                    col(ToilProcessingRecord.user_id) == user_id,
                    col(ToilProcessingRecord.month) == parts[1],
                    col(ToilProcessingRecord.status) != ProcessingStatus.REJECTED.value,
                )
            )

        if namespace == "action" and len(parts) == 3:
            user_id = _parse_uuid(parts[0], key)
            try:
                day = date.fromisoformat(parts[1])
            except ValueError:
                raise ValidationError(f"Malformed storage key: {key}") from None
            return await self._scalar_one_or_none(
                select(DayActionState).where(
                    col(DayActionState.user_id) == user_id,
                    col(DayActionState.date) == day,
                    col(DayActionState.action_type) == parts[2],
                )
            )

        model = _ID_NAMESPACES.get(namespace)
        if model is None or len(parts) != 1:
            raise ValidationError(f"Malformed storage key: {key}")
        record_id = _parse_uuid(parts[0], key)
        try:
            return await self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            await self._fail(exc, f"read {key}")

    async def put(self, key: str, record: SQLModel) -> SQLModel:
        """Insert or update record under key. Returns the stored record."""
        expected = key_for(record)
        if key != expected:
            raise ValidationError(f"Key {key} does not match record key {expected}")
        self.session.add(record)
        await self._flush(f"write {key}")
        return record

    async def delete(self, key: str) -> bool:
        """Delete the record under key. Returns False when nothing was stored there."""
        record = await self.get(key)
        if record is None:
            return False
        await self.session.delete(record)
        await self._flush(f"delete {key}")
        return True

    async def delete_many(self, records: Iterable[SQLModel]) -> int:
        """Delete several records in one flush."""
        count = 0
        for record in records:
            await self.session.delete(record)
            count += 1
        if count:
            await self._flush(f"delete {count} records")
        return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query_by_user_month(self, user_id: uuid.UUID, month_year: str) -> MonthLedger:
        """Accrual grants, usages and processing records for a user's month."""
        records = await self._scalars(
            select(ToilRecord)
            .where(col(ToilRecord.user_id) == user_id, col(ToilRecord.month_year) == month_year)
            .order_by(col(ToilRecord.date), col(ToilRecord.created_at))
        )
        usages = await self._scalars(
            select(ToilUsage)
            .where(col(ToilUsage.user_id) == user_id, col(ToilUsage.month_year) == month_year)
            .order_by(col(ToilUsage.date), col(ToilUsage.created_at))
        )
        processing = await self._scalars(
            select(ToilProcessingRecord)
            .where(col(ToilProcessingRecord.user_id) == user_id, col(ToilProcessingRecord.month) == month_year)
            .order_by(col(ToilProcessingRecord.submitted_at))
        )
        return MonthLedger(
            user_id=user_id,
            month_year=month_year,
            toil_records=records,
            usages=usages,
            processing_records=processing,
        )

    async def query_entries_by_user_and_date(self, user_id: uuid.UUID, day: date) -> list[TimeEntry]:
        return await self._scalars(
            select(TimeEntry)
            .where(col(TimeEntry.user_id) == user_id, col(TimeEntry.date) == day)
            .order_by(col(TimeEntry.created_at), col(TimeEntry.id))
        )

    async def query_entries_by_user_and_job_number(self, user_id: uuid.UUID, job_number: str) -> list[TimeEntry]:
        return await self._scalars(
            select(TimeEntry)
            .where(col(TimeEntry.user_id) == user_id, col(TimeEntry.job_number) == job_number)
            .order_by(col(TimeEntry.date), col(TimeEntry.created_at), col(TimeEntry.id))
        )

    async def query_synthetic_entries(
        self,
        user_id: uuid.UUID,
        job_numbers: Sequence[str],
        day: date | None = None,
    ) -> list[TimeEntry]:
        """Synthetic entries for a user, oldest first."""
        query = select(TimeEntry).where(
            col(TimeEntry.user_id) == user_id,
            col(TimeEntry.synthetic).is_(True),
            col(TimeEntry.job_number).in_(list(job_numbers)),
        )
        if day is not None:
            query = query.where(col(TimeEntry.date) == day)
        return await self._scalars(query.order_by(col(TimeEntry.created_at), col(TimeEntry.id)))

    async def query_usages_for_entries(self, entry_ids: Sequence[uuid.UUID]) -> list[ToilUsage]:
        if not entry_ids:
            return []
        return await self._scalars(
            select(ToilUsage)
            .where(col(ToilUsage.entry_id).in_(list(entry_ids)))
            .order_by(col(ToilUsage.created_at), col(ToilUsage.id))
        )

    async def query_usages_for_user(self, user_id: uuid.UUID) -> list[ToilUsage]:
        return await self._scalars(
            select(ToilUsage)
            .where(col(ToilUsage.user_id) == user_id)
            .order_by(col(ToilUsage.created_at), col(ToilUsage.id))
        )

    async def query_toil_records_for_day(self, user_id: uuid.UUID, day: date) -> list[ToilRecord]:
        return await self._scalars(
            select(ToilRecord)
            .where(col(ToilRecord.user_id) == user_id, col(ToilRecord.date) == day)
            .order_by(col(ToilRecord.created_at))
        )

    async def query_action_states(self, user_id: uuid.UUID, day: date) -> list[DayActionState]:
        return await self._scalars(
            select(DayActionState).where(col(DayActionState.user_id) == user_id, col(DayActionState.date) == day)
        )

    async def query_action_states_for_entries(self, entry_ids: Sequence[uuid.UUID]) -> list[DayActionState]:
        if not entry_ids:
            return []
        return await self._scalars(select(DayActionState).where(col(DayActionState.entry_id).in_(list(entry_ids))))

    async def query_processing_records(
        self,
        *,
        user_id: uuid.UUID | None = None,
        status: ProcessingStatus | None = None,
        statuses: Sequence[ProcessingStatus] | None = None,
    ) -> list[ToilProcessingRecord]:
        query = select(ToilProcessingRecord)
        if user_id is not None:
            query = query.where(col(ToilProcessingRecord.user_id) == user_id)
        if status is not None:
            query = query.where(col(ToilProcessingRecord.status) == status.value)
        if statuses is not None:
            query = query.where(col(ToilProcessingRecord.status).in_([s.value for s in statuses]))
        return await self._scalars(query.order_by(col(ToilProcessingRecord.submitted_at)))

    async def find_rollover_grant(self, processing_record_id: uuid.UUID) -> ToilRecord | None:
        return await self._scalar_one_or_none(
            select(ToilRecord).where(col(ToilRecord.rollover_from_id) == processing_record_id)
        )

    async def users_with_synthetic_entries(self, job_numbers: Sequence[str]) -> list[uuid.UUID]:
        try:
            result = await self.session.execute(
                select(col(TimeEntry.user_id))
                .where(col(TimeEntry.synthetic).is_(True), col(TimeEntry.job_number).in_(list(job_numbers)))
                .distinct()
            )
        except SQLAlchemyError as exc:
            await self._fail(exc, "list users with synthetic entries")
        return [row[0] for row in result.all()]

    async def users_who_worked_on(self, day: date) -> list[uuid.UUID]:
        """Users with logged (non-synthetic) hours on a day."""
        try:
            result = await self.session.execute(
                select(col(TimeEntry.user_id))
                .where(col(TimeEntry.date) == day, col(TimeEntry.synthetic).is_(False))
                .distinct()
            )
        except SQLAlchemyError as exc:
            await self._fail(exc, "list users who worked on a day")
        return [row[0] for row in result.all()]

    async def query_holiday_dates(self, start: date, end: date) -> set[date]:
        """Public holiday dates in the inclusive range."""
        holidays = await self._scalars(
            select(PublicHoliday).where(col(PublicHoliday.date) >= start, col(PublicHoliday.date) <= end)
        )
        return {h.date for h in holidays}

    async def delete_usages_for_entries(self, entry_ids: Sequence[uuid.UUID]) -> int:
        """Bulk-delete the usages tied to the given entries."""
        if not entry_ids:
            return 0
        try:
            result = await self.session.execute(
                sa_delete(ToilUsage).where(col(ToilUsage.entry_id).in_(list(entry_ids)))
            )
        except SQLAlchemyError as exc:
            await self._fail(exc, "delete usages")
        return int(getattr(result, "rowcount", 0) or 0)

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        """Make every write since the last commit visible to other sessions."""
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self._fail(exc, "commit")

    async def rollback(self) -> None:
        await self.session.rollback()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _flush(self, operation: str) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            await self._fail(exc, operation)

    async def _scalars(self, query: Any) -> list[Any]:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as exc:
            await self._fail(exc, "query")
        return list(result.scalars().all())

    async def _scalar_one_or_none(self, query: Any) -> Any | None:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as exc:
            await self._fail(exc, "query")
        return result.scalars().first()

    async def _fail(self, exc: SQLAlchemyError, operation: str) -> NoReturn:
        await self.session.rollback()
        if isinstance(exc, IntegrityError):
            logger.warning("Ledger %s hit a uniqueness conflict: %s", operation, exc.orig)
            raise KeyConflictError(f"Conflicting write during {operation}") from exc
        logger.exception("Ledger %s failed", operation)
        raise StorageError from exc
