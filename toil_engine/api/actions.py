# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query

from toil_engine.api.deps import validate_user_scope
from toil_engine.db import SessionDep
from toil_engine.schemas.action import DayActionsResponse, TogglePayload, ToggleResult
from toil_engine.services import reconciler as reconciler_service

actions_router = APIRouter(
    prefix="/users/{user_id}/actions",
    tags=["actions"],
    dependencies=[Depends(validate_user_scope)],
)


@actions_router.post("/toggle", response_model=ToggleResult)
async def toggle_action(
    user_id: uuid.UUID,
    payload: TogglePayload,
    session: SessionDep,
) -> ToggleResult:
    """Switch a day action on or off. Failures come back in the result body."""
    return await reconciler_service.toggle_action(
        session, user_id, payload.date, payload.action_type, payload.active
    )


@actions_router.get("", response_model=DayActionsResponse)
async def get_day_actions(
    user_id: uuid.UUID,
    session: SessionDep,
    day: date = Query(alias="date"),
) -> DayActionsResponse:
    return await reconciler_service.get_day_actions(session, user_id, day)
