# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from toil_engine.api.deps import validate_user_scope
from toil_engine.db import SessionDep
from toil_engine.schemas.entry import CreateEntryPayload, EntryListResponse, EntryResponse
from toil_engine.services import time_entry as entry_service

entries_router = APIRouter(
    prefix="/users/{user_id}/entries",
    tags=["entries"],
    dependencies=[Depends(validate_user_scope)],
)


@entries_router.post("", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    user_id: uuid.UUID,
    payload: CreateEntryPayload,
    session: SessionDep,
) -> EntryResponse:
    """Log worked hours. The day's TOIL is recalculated."""
    return await entry_service.create_entry(session, user_id, payload)


@entries_router.get("", response_model=EntryListResponse)
async def list_entries(
    user_id: uuid.UUID,
    session: SessionDep,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> EntryListResponse:
    return await entry_service.list_entries(session, user_id, start, end, offset, limit)


@entries_router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    user_id: uuid.UUID,
    entry_id: uuid.UUID,
    session: SessionDep,
) -> None:
    """Delete a logged entry. Synthetic entries go through the day actions instead."""
    await entry_service.delete_entry(session, user_id, entry_id)
