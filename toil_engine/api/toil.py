# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from toil_engine.api.deps import validate_user_scope
from toil_engine.db import SessionDep
from toil_engine.schemas.toil import (
    MONTH_PATTERN,
    CleanupResponse,
    MonthStateResponse,
    ProcessingListResponse,
    ProcessingRecordResponse,
    SubmitProcessingPayload,
    ToilRecordListResponse,
    TOILSummary,
)
from toil_engine.services import accrual as accrual_service
from toil_engine.services import month_end as month_end_service
from toil_engine.services import reconciler as reconciler_service

toil_router = APIRouter(
    prefix="/users/{user_id}",
    tags=["toil"],
    dependencies=[Depends(validate_user_scope)],
)


@toil_router.get("/toil/summary", response_model=TOILSummary)
async def get_toil_summary(
    user_id: uuid.UUID,
    session: SessionDep,
    month: str = Query(pattern=MONTH_PATTERN),
) -> TOILSummary:
    """Accrued, used and remaining TOIL for a month."""
    return await accrual_service.get_toil_summary(session, user_id, month)


@toil_router.get("/toil/records", response_model=ToilRecordListResponse)
async def list_toil_records(
    user_id: uuid.UUID,
    session: SessionDep,
    month: str = Query(pattern=MONTH_PATTERN),
) -> ToilRecordListResponse:
    return await accrual_service.list_toil_records(session, user_id, month)


@toil_router.post(
    "/toil/processing",
    response_model=ProcessingRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_month_end(
    user_id: uuid.UUID,
    payload: SubmitProcessingPayload,
    session: SessionDep,
) -> ProcessingRecordResponse:
    """Close out a month for approval."""
    return await month_end_service.submit_month_end(session, user_id, payload.month, payload.surplus_action)


@toil_router.get("/toil/processing", response_model=ProcessingListResponse)
async def list_processing_records(
    user_id: uuid.UUID,
    session: SessionDep,
) -> ProcessingListResponse:
    return await month_end_service.list_user_records(session, user_id)


@toil_router.get("/toil/processing/state", response_model=MonthStateResponse)
async def get_month_state(
    user_id: uuid.UUID,
    session: SessionDep,
    month: str = Query(pattern=MONTH_PATTERN),
) -> MonthStateResponse:
    """Where the month stands in the close-out workflow."""
    return await month_end_service.get_month_state(session, user_id, month)


@toil_router.post("/synthetic-entries/cleanup", response_model=CleanupResponse)
async def cleanup_synthetic_entries(
    user_id: uuid.UUID,
    session: SessionDep,
) -> CleanupResponse:
    """Remove duplicate synthetic entries left behind by concurrent clients."""
    removed = await reconciler_service.cleanup_duplicates(session, user_id)
    return CleanupResponse(user_id=user_id, removed=removed)
