"""Month-end close-out: split the remaining balance into rollover and surplus."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from toil_engine.exceptions import AlreadyProcessed, KeyConflictError, NotProcessable
from toil_engine.models.enums import (
    AuditAction,
    AuditEntityType,
    MonthState,
    ProcessingStatus,
    SurplusAction,
    ToilRecordStatus,
)
from toil_engine.models.processing import ToilProcessingRecord
from toil_engine.schemas.events import ChangeTopic, MonthEndSubmittedEvent, MonthStateUpdatedEvent
from toil_engine.schemas.toil import MonthStateResponse, ProcessingListResponse, ProcessingRecordResponse
from toil_engine.services.accrual import (
    distribute,
    employment_type_for,
    first_day_of_next_month,
    parse_month,
    summarize,
    threshold_for,
)
from toil_engine.services.audit import model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore, processing_key
from toil_engine.services.notifier import get_notifier
from toil_engine.services.thresholds import get_thresholds
from toil_engine.services.user_directory import get_user_directory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def build_processing_response(record: ToilProcessingRecord) -> ProcessingRecordResponse:
    """Map a processing record to its response schema."""
    return ProcessingRecordResponse(
        id=record.id,
        user_id=record.user_id,
        month=record.month,
        total_hours=record.total_hours,
        rollover_hours=record.rollover_hours,
        surplus_hours=record.surplus_hours,
        surplus_action=SurplusAction(record.surplus_action) if record.surplus_action else None,
        status=ProcessingStatus(record.status),
        submitted_at=record.submitted_at,
        approver_id=record.approver_id,
        approved_at=record.approved_at,
        original_records=[uuid.UUID(r) for r in record.original_records or []],
    )


def month_state_for(record: ToilProcessingRecord | None) -> MonthState:
    """Derive the close-out state from the month's current record."""
    if record is None or record.status == ProcessingStatus.REJECTED.value:
        return MonthState.NOT_STARTED
    if record.status == ProcessingStatus.PENDING.value:
        return MonthState.IN_PROGRESS
    return MonthState.COMPLETED


def is_processable(month: str, today: date | None = None) -> bool:
    """A month can be closed once it is over."""
    if today is None:
        today = date.today()
    return today >= first_day_of_next_month(month)


async def publish_month_state(user_id: uuid.UUID, month: str, state: MonthState) -> None:
    await get_notifier().publish(
        ChangeTopic.MONTH_STATE_UPDATED,
        MonthStateUpdatedEvent(user_id=user_id, month=month, state=state),
    )


async def submit_month_end(
    session: AsyncSession,
    user_id: uuid.UUID,
    month: str,
    surplus_action: SurplusAction | None = None,
    *,
    today: date | None = None,
) -> ProcessingRecordResponse:
    """Close out a user's month as a pending processing record.

    The rollover cap comes from the user's employment type; users unknown to
    the directory are treated as casual.
    """
    parse_month(month)
    store = LedgerStore(session)

    if await store.get(processing_key(user_id, month)) is not None:
        raise AlreadyProcessed(f"TOIL for {month} has already been submitted")

    ledger = await store.query_by_user_month(user_id, month)
    summary = summarize(user_id, month, ledger.toil_records, ledger.usages)
    if not is_processable(month, today) and summary.remaining == 0:
        raise NotProcessable(f"{month} has not ended yet and has no TOIL to process")

    user = await get_user_directory().get_user(user_id)
    employment_type = employment_type_for(user.fte if user is not None else None)
    thresholds = await get_thresholds(session)
    distribution = distribute(summary, threshold_for(employment_type, thresholds))

    record = ToilProcessingRecord(
        user_id=user_id,
        month=month,
        total_hours=summary.remaining,
        rollover_hours=distribution.rollover_hours,
        surplus_hours=distribution.surplus_hours,
        surplus_action=surplus_action.value if surplus_action and distribution.surplus_hours > 0 else None,
        status=ProcessingStatus.PENDING,
        original_records=[
            str(r.id) for r in ledger.toil_records if r.status == ToilRecordStatus.ACTIVE.value
        ],
    )
    try:
        await store.put(processing_key(user_id, month), record)
        write_audit_log(
            session,
            actor_id=user_id,
            entity_type=AuditEntityType.PROCESSING_RECORD,
            entity_id=record.id,
            action=AuditAction.SUBMIT,
            after_json=model_to_audit_dict(record),
        )
        await store.commit()
    except KeyConflictError:
        # Lost a race with another submission for the same month.
        raise AlreadyProcessed(f"TOIL for {month} has already been submitted") from None

    logger.info(
        "Submitted TOIL for user=%s month=%s (%s): rollover=%.2f surplus=%.2f",
        user_id,
        month,
        employment_type,
        record.rollover_hours,
        record.surplus_hours,
    )
    await get_notifier().publish(
        ChangeTopic.MONTH_END_SUBMITTED,
        MonthEndSubmittedEvent(
            user_id=user_id,
            record_id=record.id,
            month=month,
            rollover_hours=record.rollover_hours,
            surplus_hours=record.surplus_hours,
        ),
    )
    await publish_month_state(user_id, month, MonthState.IN_PROGRESS)
    return build_processing_response(record)


async def get_month_state(
    session: AsyncSession,
    user_id: uuid.UUID,
    month: str,
    *,
    today: date | None = None,
) -> MonthStateResponse:
    """Where a user's month stands, with its current processing record."""
    parse_month(month)
    record = await LedgerStore(session).get(processing_key(user_id, month))
    return MonthStateResponse(
        user_id=user_id,
        month=month,
        state=month_state_for(record),
        processable=is_processable(month, today),
        record=build_processing_response(record) if record is not None else None,
    )


async def list_user_records(session: AsyncSession, user_id: uuid.UUID) -> ProcessingListResponse:
    """Every processing record a user has submitted, rejected ones included."""
    records = await LedgerStore(session).query_processing_records(user_id=user_id)
    return ProcessingListResponse(
        items=[build_processing_response(r) for r in records],
        total=len(records),
    )
