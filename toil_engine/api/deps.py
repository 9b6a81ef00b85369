# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path, status

from toil_engine.exceptions import AppError
from toil_engine.models.enums import UserRole
from toil_engine.schemas.auth import AuthContext
from toil_engine.services.user_directory import APPROVER_ROLES


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: UserRole = Header(default=UserRole.TEAM_MEMBER),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if auth.role != UserRole.ADMIN:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def require_approver(
    auth: AuthDep,
) -> AuthContext:
    """Require a role allowed to approve TOIL (admin or manager)."""
    if auth.role not in APPROVER_ROLES:
        raise AppError("Manager or admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


ApproverDep = Annotated[AuthContext, Depends(require_approver)]


async def validate_user_scope(
    user_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Team members may only address their own user paths."""
    if user_id != auth.user_id and auth.role not in APPROVER_ROLES:
        raise AppError("Cannot access another user's TOIL", status_code=status.HTTP_403_FORBIDDEN)
    return auth
