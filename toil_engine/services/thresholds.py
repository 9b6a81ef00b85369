from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from toil_engine.models.enums import AuditAction, AuditEntityType
from toil_engine.models.threshold import THRESHOLD_ROW_ID, ToilThresholdSetting
from toil_engine.schemas.toil import ToilThresholds
from toil_engine.services.audit import model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_THRESHOLDS = ToilThresholds(full_time=8.0, part_time=6.0, casual=4.0)

# Singleton audit entity id for the threshold table.
_THRESHOLDS_ENTITY_ID = uuid.UUID(int=THRESHOLD_ROW_ID)


def _to_schema(setting: ToilThresholdSetting) -> ToilThresholds:
    return ToilThresholds(full_time=setting.full_time, part_time=setting.part_time, casual=setting.casual)


async def get_thresholds(session: AsyncSession) -> ToilThresholds:
    """Saved thresholds, or the defaults when none were ever saved."""
    setting = await session.get(ToilThresholdSetting, THRESHOLD_ROW_ID)
    if setting is None:
        return DEFAULT_THRESHOLDS.model_copy()
    return _to_schema(setting)


async def save_thresholds(
    session: AsyncSession,
    actor_id: uuid.UUID,
    thresholds: ToilThresholds,
) -> ToilThresholds:
    """Replace the saved thresholds."""
    setting = await session.get(ToilThresholdSetting, THRESHOLD_ROW_ID)
    before = model_to_audit_dict(setting) if setting is not None else None
    if setting is None:
        setting = ToilThresholdSetting(id=THRESHOLD_ROW_ID, **thresholds.model_dump())
        session.add(setting)
    else:
        setting.full_time = thresholds.full_time
        setting.part_time = thresholds.part_time
        setting.casual = thresholds.casual
    setting.updated_by = actor_id

    write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.THRESHOLDS,
        entity_id=_THRESHOLDS_ENTITY_ID,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=thresholds.model_dump(),
    )
    await LedgerStore(session).commit()
    return _to_schema(setting)


async def reset_thresholds(session: AsyncSession, actor_id: uuid.UUID) -> ToilThresholds:
    """Put the defaults back."""
    return await save_thresholds(session, actor_id, DEFAULT_THRESHOLDS)
