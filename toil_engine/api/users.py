# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from toil_engine.api.deps import AdminDep, AuthDep
from toil_engine.exceptions import NotFoundError
from toil_engine.schemas.user import UpsertUserPayload, UserResponse
from toil_engine.services.accrual import employment_type_for
from toil_engine.services.user_directory import UserInfo, get_user_directory

users_router = APIRouter(prefix="/users", tags=["users"])


def _build_user_response(user: UserInfo) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        fte=user.fte,
        role=user.role,
        employment_type=employment_type_for(user.fte),
        schedule=user.schedule,
    )


@users_router.put(
    "/{user_id}",
    response_model=UserResponse,
)
async def upsert_user(
    user_id: uuid.UUID,
    payload: UpsertUserPayload,
    auth: AdminDep,
) -> UserResponse:
    """Create or update a user in the stub directory (admin only)."""
    directory = get_user_directory()
    user = UserInfo(id=user_id, **payload.model_dump())
    directory.seed(user)  # ty: ignore[unresolved-attribute]
    return _build_user_response(user)


@users_router.get(
    "/{user_id}",
    response_model=UserResponse,
)
async def get_user(
    user_id: uuid.UUID,
    auth: AuthDep,
) -> UserResponse:
    """Fetch a user from the directory."""
    user = await get_user_directory().get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return _build_user_response(user)
