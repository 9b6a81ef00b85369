"""Two-party approval of month-end processing records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from toil_engine.exceptions import InvalidTransition, NotFoundError, SelfApproval
from toil_engine.models.base import now_utc
from toil_engine.models.enums import AuditAction, AuditEntityType, MonthState, ProcessingStatus
from toil_engine.models.toil import ToilRecord
from toil_engine.schemas.events import ApprovalUpdatedEvent, ChangeTopic
from toil_engine.schemas.toil import ProcessingListResponse, ProcessingRecordResponse
from toil_engine.services.accrual import first_day_of_next_month, month_year_of, publish_toil_updated
from toil_engine.services.audit import model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore, key_for
from toil_engine.services.month_end import build_processing_response, month_state_for, publish_month_state
from toil_engine.services.notifier import get_notifier

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.models.processing import ToilProcessingRecord

logger = logging.getLogger(__name__)


def can_approve(record: ToilProcessingRecord, acting_user_id: uuid.UUID) -> bool:
    """Someone other than the submitter, on a pending record nobody has decided yet."""
    return (
        record.user_id != acting_user_id
        and record.status == ProcessingStatus.PENDING.value
        and record.approver_id is None
    )


async def _get_record_or_404(store: LedgerStore, record_id: uuid.UUID) -> ToilProcessingRecord:
    record = await store.get(f"toilprocessing:{record_id}")
    if record is None:
        raise NotFoundError("TOIL processing record not found")
    return record


async def _grant_rollover(store: LedgerStore, record: ToilProcessingRecord) -> ToilRecord | None:
    """Carry approved rollover hours into the first day of the next month, once."""
    if record.rollover_hours <= 0:
        return None
    if await store.find_rollover_grant(record.id) is not None:
        return None

    start = first_day_of_next_month(record.month)
    grant = ToilRecord(
        user_id=record.user_id,
        date=start,
        hours=record.rollover_hours,
        month_year=month_year_of(start),
        rollover_from_id=record.id,
    )
    await store.put(f"toilrecord:{grant.id}", grant)
    write_audit_log(
        store.session,
        actor_id=record.approver_id or record.user_id,
        entity_type=AuditEntityType.TOIL_RECORD,
        entity_id=grant.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(grant),
    )
    return grant


async def _decide(
    session: AsyncSession,
    record_id: uuid.UUID,
    approver_id: uuid.UUID,
    status: ProcessingStatus,
) -> ProcessingRecordResponse:
    store = LedgerStore(session)
    record = await _get_record_or_404(store, record_id)

    if record.user_id == approver_id:
        verb = "approve" if status == ProcessingStatus.APPROVED else "reject"
        raise SelfApproval(f"Cannot {verb} your own TOIL request")
    if not can_approve(record, approver_id):
        raise InvalidTransition(f"Cannot move a {record.status} TOIL request to {status}")

    before = model_to_audit_dict(record)
    record.status = status
    record.approver_id = approver_id
    record.approved_at = now_utc()
    await store.put(key_for(record), record)

    grant = await _grant_rollover(store, record) if status == ProcessingStatus.APPROVED else None

    write_audit_log(
        session,
        actor_id=approver_id,
        entity_type=AuditEntityType.PROCESSING_RECORD,
        entity_id=record.id,
        action=AuditAction.APPROVE if status == ProcessingStatus.APPROVED else AuditAction.REJECT,
        before_json=before,
        after_json=model_to_audit_dict(record),
    )
    await store.commit()
    logger.info(
        "TOIL request %s for user=%s month=%s %s by %s",
        record.id,
        record.user_id,
        record.month,
        status,
        approver_id,
    )

    await get_notifier().publish(
        ChangeTopic.APPROVAL_UPDATED,
        ApprovalUpdatedEvent(
            user_id=record.user_id,
            record_id=record.id,
            month=record.month,
            status=status,
            approver_id=approver_id,
        ),
    )
    await publish_month_state(record.user_id, record.month, month_state_for(record))
    if grant is not None:
        await publish_toil_updated(session, record.user_id, grant.month_year)
    return build_processing_response(record)


async def approve_toil(
    session: AsyncSession,
    record_id: uuid.UUID,
    approver_id: uuid.UUID,
) -> ProcessingRecordResponse:
    """Approve a pending month-end record and grant its rollover."""
    return await _decide(session, record_id, approver_id, ProcessingStatus.APPROVED)


async def reject_toil(
    session: AsyncSession,
    record_id: uuid.UUID,
    approver_id: uuid.UUID,
) -> ProcessingRecordResponse:
    """Reject a pending month-end record. The user may submit the month again."""
    return await _decide(session, record_id, approver_id, ProcessingStatus.REJECTED)


async def list_pending_approvals(session: AsyncSession, approver_id: uuid.UUID) -> ProcessingListResponse:
    """Pending records the approver may act on (never their own)."""
    records = await LedgerStore(session).query_processing_records(status=ProcessingStatus.PENDING)
    items = [build_processing_response(r) for r in records if r.user_id != approver_id]
    return ProcessingListResponse(items=items, total=len(items))


async def list_processed_records(session: AsyncSession) -> ProcessingListResponse:
    records = await LedgerStore(session).query_processing_records(
        statuses=[ProcessingStatus.APPROVED, ProcessingStatus.REJECTED],
    )
    return ProcessingListResponse(
        items=[build_processing_response(r) for r in records],
        total=len(records),
    )
