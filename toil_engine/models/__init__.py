from sqlmodel import SQLModel

from toil_engine.models.action_state import DayActionState
from toil_engine.models.audit import AuditLog
from toil_engine.models.base import TimestampMixin, UUIDBase
from toil_engine.models.enums import (
    ActionType,
    AuditAction,
    AuditEntityType,
    EmploymentType,
    JobNumber,
    MonthState,
    ProcessingStatus,
    SurplusAction,
    ToilRecordStatus,
    UserRole,
)
from toil_engine.models.holiday import PublicHoliday
from toil_engine.models.processing import ToilProcessingRecord
from toil_engine.models.threshold import ToilThresholdSetting
from toil_engine.models.time_entry import TimeEntry
from toil_engine.models.toil import ToilRecord, ToilUsage

__all__ = [
    "ActionType",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "DayActionState",
    "EmploymentType",
    "JobNumber",
    "MonthState",
    "ProcessingStatus",
    "PublicHoliday",
    "SQLModel",
    "SurplusAction",
    "TimeEntry",
    "TimestampMixin",
    "ToilProcessingRecord",
    "ToilRecord",
    "ToilRecordStatus",
    "ToilThresholdSetting",
    "ToilUsage",
    "UUIDBase",
    "UserRole",
]
