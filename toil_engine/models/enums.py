from __future__ import annotations

import enum


class ActionType(enum.StrEnum):
    """Day-level toggles a user can flip on the timesheet."""

    SICK = "sick"
    LEAVE = "leave"
    TOIL = "toil"
    LUNCH = "lunch"
    SMOKO = "smoko"


class JobNumber(enum.StrEnum):
    """Job numbers reserved for synthetic time entries."""

    TOIL = "TOIL"
    SICK = "SICK"
    LEAVE = "LEAVE"


class ToilRecordStatus(enum.StrEnum):
    """Lifecycle of an accrued TOIL grant."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class ProcessingStatus(enum.StrEnum):
    """State machine for month-end processing records."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SurplusAction(enum.StrEnum):
    """What happens to hours above the rollover threshold."""

    PAID = "paid"
    BANKED = "banked"


class MonthState(enum.StrEnum):
    """Derived month-end progress for a user and month."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class EmploymentType(enum.StrEnum):
    """Employment type derived from FTE."""

    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CASUAL = "casual"


class UserRole(enum.StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    TEAM_MEMBER = "team-member"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    PROCESSING_RECORD = "PROCESSING_RECORD"
    TOIL_RECORD = "TOIL_RECORD"
    SYNTHETIC_ENTRY = "SYNTHETIC_ENTRY"
    THRESHOLDS = "THRESHOLDS"
    HOLIDAY = "HOLIDAY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    EXPIRE = "EXPIRE"
    DEDUPLICATE = "DEDUPLICATE"


# Synthetic job number produced by each entry-backed action. Break toggles
# (lunch, smoko) never produce an entry.
ACTION_JOB_NUMBERS: dict[ActionType, JobNumber] = {
    ActionType.SICK: JobNumber.SICK,
    ActionType.LEAVE: JobNumber.LEAVE,
    ActionType.TOIL: JobNumber.TOIL,
}

EXCLUSIVE_ACTIONS: frozenset[ActionType] = frozenset({ActionType.SICK, ActionType.LEAVE, ActionType.TOIL})
