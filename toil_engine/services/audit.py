"""Append-only audit trail of ledger mutations.

Entries are staged on the caller's session and commit or roll back together
with the change they describe.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from toil_engine.models.audit import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from toil_engine.models.enums import AuditAction, AuditEntityType

# Acts for changes made by the sweep and other unattended jobs.
SYSTEM_ACTOR = uuid.UUID(int=0)


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Snapshot a row as JSON-safe values (UUIDs and dates become strings)."""
    return model.model_dump(mode="json")


def write_audit_log(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def audit_trail(session: AsyncSession, entity_id: uuid.UUID) -> list[AuditLog]:
    """Every audit entry for one entity, oldest first."""
    result = await session.execute(
        select(AuditLog).where(col(AuditLog.entity_id) == entity_id).order_by(col(AuditLog.created_at))
    )
    return list(result.scalars().all())
