# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from toil_engine.api.deps import AdminDep, ApproverDep, AuthDep
from toil_engine.db import SessionDep
from toil_engine.schemas.toil import ProcessingListResponse, ProcessingRecordResponse, ToilThresholds
from toil_engine.services import approval as approval_service
from toil_engine.services import thresholds as threshold_service

approvals_router = APIRouter(prefix="/toil/approvals", tags=["approvals"])

thresholds_router = APIRouter(prefix="/toil/thresholds", tags=["thresholds"])


# ---------------------------------------------------------------------------
# Approvals
# ---------------------------------------------------------------------------


@approvals_router.get("", response_model=ProcessingListResponse)
async def list_pending_approvals(
    session: SessionDep,
    auth: ApproverDep,
) -> ProcessingListResponse:
    """Pending month-end records awaiting someone else's decision."""
    return await approval_service.list_pending_approvals(session, auth.user_id)


@approvals_router.get("/processed", response_model=ProcessingListResponse)
async def list_processed_records(
    session: SessionDep,
    auth: ApproverDep,
) -> ProcessingListResponse:
    return await approval_service.list_processed_records(session)


@approvals_router.post("/{record_id}/approve", response_model=ProcessingRecordResponse)
async def approve_toil(
    record_id: uuid.UUID,
    session: SessionDep,
    auth: ApproverDep,
) -> ProcessingRecordResponse:
    """Approve a pending month-end record (manager or admin)."""
    return await approval_service.approve_toil(session, record_id, auth.user_id)


@approvals_router.post("/{record_id}/reject", response_model=ProcessingRecordResponse)
async def reject_toil(
    record_id: uuid.UUID,
    session: SessionDep,
    auth: ApproverDep,
) -> ProcessingRecordResponse:
    """Reject a pending month-end record (manager or admin)."""
    return await approval_service.reject_toil(session, record_id, auth.user_id)


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------


@thresholds_router.get("", response_model=ToilThresholds)
async def get_thresholds(
    session: SessionDep,
    auth: AuthDep,
) -> ToilThresholds:
    return await threshold_service.get_thresholds(session)


@thresholds_router.put("", response_model=ToilThresholds)
async def save_thresholds(
    payload: ToilThresholds,
    session: SessionDep,
    auth: AdminDep,
) -> ToilThresholds:
    """Replace the rollover thresholds (admin only)."""
    return await threshold_service.save_thresholds(session, auth.user_id, payload)


@thresholds_router.delete("", response_model=ToilThresholds)
async def reset_thresholds(
    session: SessionDep,
    auth: AdminDep,
) -> ToilThresholds:
    """Restore the default thresholds (admin only)."""
    return await threshold_service.reset_thresholds(session, auth.user_id)
