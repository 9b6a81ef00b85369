"""Reconcile day-level action toggles with the synthetic entries that back them.

Every ``(user, date, action_type)`` key is a small on/off state machine
persisted as a DayActionState row. Sick, leave and TOIL are backed by at most
one synthetic time entry each; lunch and smoko only flip state and feed the
daily TOIL accrual. Store failures are rolled back and reported in the
ToggleResult so the tracked entry id never points at a missing entry.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING

from toil_engine.config import get_settings
from toil_engine.exceptions import StorageError
from toil_engine.models.action_state import DayActionState
from toil_engine.models.base import now_utc
from toil_engine.models.enums import (
    ACTION_JOB_NUMBERS,
    EXCLUSIVE_ACTIONS,
    ActionType,
    AuditAction,
    AuditEntityType,
    JobNumber,
)
from toil_engine.models.time_entry import TimeEntry
from toil_engine.models.toil import ToilUsage
from toil_engine.schemas.action import (
    CREATION_ERROR,
    REMOVAL_ERROR,
    DayActionResponse,
    DayActionsResponse,
    ToggleResult,
)
from toil_engine.schemas.events import ActionToggledEvent, ChangeTopic
from toil_engine.services.accrual import accrue_daily_toil, month_year_of, publish_toil_updated
from toil_engine.services.audit import model_to_audit_dict, write_audit_log
from toil_engine.services.ledger_store import LedgerStore, action_key
from toil_engine.services.notifier import get_notifier
from toil_engine.services.schedule import STANDARD_TOIL_DAY_HOURS, scheduled_hours_for
from toil_engine.services.user_directory import get_user_directory

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from toil_engine.services.schedule import WorkSchedule

logger = logging.getLogger(__name__)

ToggleKey = tuple[uuid.UUID, date, ActionType]


# ---------------------------------------------------------------------------
# In-flight guard
# ---------------------------------------------------------------------------


class ToggleGuard:
    """Drops toggles that overlap one in flight or follow the last one too quickly.

    Dropped toggles are not queued; the caller sees ``dropped=True`` and the
    state as it stands. Keys are forgotten once their debounce window has
    passed, so the guard only holds recently toggled keys.
    """

    def __init__(self, debounce_ms: int = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.debounce_seconds = max(debounce_ms, 0) / 1000
        self._clock = clock
        self._in_flight: set[ToggleKey] = set()
        self._last_accepted: dict[ToggleKey, float] = {}

    def try_acquire(self, key: ToggleKey) -> bool:
        now = self._clock()
        self._prune(now)
        if key in self._in_flight:
            return False
        if key in self._last_accepted:
            return False
        self._in_flight.add(key)
        self._last_accepted[key] = now
        return True

    def try_hold(self, keys: Iterable[ToggleKey]) -> bool:
        """Claim keys a cascade will change. Only in-flight keys block; debounce is not consulted."""
        keys = set(keys)
        if keys & self._in_flight:
            return False
        self._in_flight.update(keys)
        return True

    def release(self, *keys: ToggleKey) -> None:
        self._in_flight.difference_update(keys)

    def in_flight(self, key: ToggleKey) -> bool:
        return key in self._in_flight

    def tracked(self) -> int:
        """Number of keys still inside their debounce window."""
        return len(self._last_accepted)

    def _prune(self, now: float) -> None:
        cutoff = now - self.debounce_seconds
        stale = [key for key, accepted in self._last_accepted.items() if accepted <= cutoff]
        for key in stale:
            del self._last_accepted[key]


_toggle_guard: ToggleGuard | None = None


def get_toggle_guard() -> ToggleGuard:
    """Return the process-wide toggle guard."""
    global _toggle_guard
    if _toggle_guard is None:
        _toggle_guard = ToggleGuard(get_settings().toggle_debounce_ms)
    return _toggle_guard


def set_toggle_guard(guard: ToggleGuard | None) -> None:
    """Override the guard (for testing). None rebuilds it from settings on next use."""
    global _toggle_guard
    _toggle_guard = guard


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def hours_to_record(schedule: WorkSchedule | None, day: date, action_type: ActionType) -> float:
    """Hours booked by the synthetic entry for an action."""
    if action_type == ActionType.TOIL:
        return STANDARD_TOIL_DAY_HOURS
    return scheduled_hours_for(schedule, day)


def _mark(state: DayActionState, *, active: bool, entry_id: uuid.UUID | None) -> None:
    state.active = active
    state.entry_id = entry_id
    state.version = (state.version or 0) + 1
    state.updated_at = now_utc()


async def _load_state(store: LedgerStore, user_id: uuid.UUID, day: date, action_type: ActionType) -> DayActionState:
    state = await store.get(action_key(user_id, day, action_type))
    if state is None:
        state = DayActionState(user_id=user_id, date=day, action_type=action_type.value, version=0)
    return state


async def _publish_toggled(
    session: AsyncSession,
    user_id: uuid.UUID,
    day: date,
    action_type: ActionType,
    result: ToggleResult,
) -> None:
    await get_notifier().publish(
        ChangeTopic.ACTION_TOGGLED,
        ActionToggledEvent(
            user_id=user_id,
            date=day,
            action_type=action_type,
            active=result.active,
            entry_id=result.entry_id,
        ),
    )
    if action_type == ActionType.TOIL:
        await publish_toil_updated(session, user_id, month_year_of(day))


async def _remove_entries(store: LedgerStore, actor_id: uuid.UUID, entries: list[TimeEntry]) -> None:
    """Delete synthetic entries together with the usages that hang off them."""
    if not entries:
        return
    await store.delete_usages_for_entries([e.id for e in entries])
    for entry in entries:
        write_audit_log(
            store.session,
            actor_id=actor_id,
            entity_type=AuditEntityType.SYNTHETIC_ENTRY,
            entity_id=entry.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(entry),
        )
    await store.delete_many(entries)


async def _set_break(
    store: LedgerStore,
    user_id: uuid.UUID,
    day: date,
    action_type: ActionType,
    *,
    active: bool,
) -> tuple[ToggleResult, bool]:
    state = await _load_state(store, user_id, day, action_type)
    if state.active == active:
        return ToggleResult(success=True, active=active), False

    was_active = state.active
    try:
        _mark(state, active=active, entry_id=None)
        await store.put(action_key(user_id, day, action_type), state)
        await store.commit()
    except StorageError:
        await store.rollback()
        logger.warning("Could not switch %s %s for user=%s on %s", action_type, "on" if active else "off", user_id, day)
        result = ToggleResult(success=False, active=was_active, error=CREATION_ERROR if active else REMOVAL_ERROR)
        return result, False

    # Working through a break changes the day's hours worked.
    await accrue_daily_toil(store.session, user_id, day)
    return ToggleResult(success=True, active=active), True


async def _stage_off(store: LedgerStore, state: DayActionState) -> bool:
    """Remove an action's entries and mark it off without committing. False when there was nothing to do."""
    action_type = ActionType(state.action_type)
    job_number = ACTION_JOB_NUMBERS[action_type]
    entries = await store.query_synthetic_entries(state.user_id, [job_number.value], state.date)
    if not state.active and not entries:
        return False

    # The tracked entry may already be gone (removed by another client).
    await _remove_entries(store, state.user_id, entries)
    if state.active or state.entry_id is not None:
        _mark(state, active=False, entry_id=None)
        await store.put(action_key(state.user_id, state.date, action_type), state)
    logger.debug("Staged %s off for user=%s on %s (%d entries)", action_type, state.user_id, state.date, len(entries))
    return True


async def _switch_off(
    store: LedgerStore,
    user_id: uuid.UUID,
    day: date,
    action_type: ActionType,
) -> tuple[ToggleResult, bool]:
    if action_type not in ACTION_JOB_NUMBERS:
        return await _set_break(store, user_id, day, action_type, active=False)

    state = await _load_state(store, user_id, day, action_type)
    was_active, tracked_id = state.active, state.entry_id
    try:
        changed = await _stage_off(store, state)
        if changed:
            await store.commit()
    except StorageError:
        await store.rollback()
        logger.warning("Could not remove %s entry for user=%s on %s", action_type, user_id, day)
        return ToggleResult(success=False, active=was_active, entry_id=tracked_id, error=REMOVAL_ERROR), False

    if changed:
        logger.info("Switched %s off for user=%s on %s", action_type, user_id, day)
    return ToggleResult(success=True, active=False), changed


async def _switch_on(
    store: LedgerStore,
    user_id: uuid.UUID,
    day: date,
    action_type: ActionType,
) -> tuple[ToggleResult, bool]:
    """Switch an entry-backed action on, switching its exclusive siblings off in the same commit."""
    if action_type not in ACTION_JOB_NUMBERS:
        return await _set_break(store, user_id, day, action_type, active=True)

    session = store.session
    state = await _load_state(store, user_id, day, action_type)
    job_number = ACTION_JOB_NUMBERS[action_type]
    entries = await store.query_synthetic_entries(user_id, [job_number.value], day)
    was_active, tracked_id = state.active, state.entry_id
    failed = ToggleResult(success=False, active=was_active, entry_id=tracked_id, error=CREATION_ERROR)

    hours = 0.0
    if not entries:
        user = await get_user_directory().get_user(user_id)
        hours = hours_to_record(user.schedule if user is not None else None, day, action_type)
        if hours <= 0:
            logger.warning("No scheduled hours for %s on %s for user=%s", action_type, day, user_id)
            return failed, False

    already_on = state.active and len(entries) == 1 and state.entry_id == entries[0].id
    switched_off: list[ActionType] = []
    try:
        for other in sorted(EXCLUSIVE_ACTIONS - {action_type}):
            if await _stage_off(store, await _load_state(store, user_id, day, other)):
                switched_off.append(other)
        if already_on and not switched_off:
            return ToggleResult(success=True, active=True, entry_id=tracked_id), False

        if already_on:
            entry_id = tracked_id
        elif entries:
            # Another client got there first: adopt its entry.
            entry = entries[0]
            await _remove_entries(store, user_id, entries[1:])
            if action_type == ActionType.TOIL and not await store.query_usages_for_entries([entry.id]):
                await _record_usage(store, entry)
            entry_id = entry.id
        else:
            entry = TimeEntry(
                user_id=user_id,
                date=day,
                hours=hours,
                job_number=job_number.value,
                synthetic=True,
                description=f"{job_number.value} day",
            )
            await store.put(f"entry:{entry.id}", entry)
            write_audit_log(
                session,
                actor_id=user_id,
                entity_type=AuditEntityType.SYNTHETIC_ENTRY,
                entity_id=entry.id,
                action=AuditAction.CREATE,
                after_json=model_to_audit_dict(entry),
            )
            if action_type == ActionType.TOIL:
                await _record_usage(store, entry)
            entry_id = entry.id

        if not already_on:
            _mark(state, active=True, entry_id=entry_id)
            await store.put(action_key(user_id, day, action_type), state)
        await store.commit()
    except StorageError:
        await store.rollback()
        logger.warning("Could not create %s entry for user=%s on %s", job_number, user_id, day)
        return failed, False

    for other in switched_off:
        await _publish_toggled(session, user_id, day, other, ToggleResult(success=True, active=False))
    logger.info("Switched %s on for user=%s on %s entry=%s", action_type, user_id, day, entry_id)
    return ToggleResult(success=True, active=True, entry_id=entry_id), not already_on


async def _record_usage(store: LedgerStore, entry: TimeEntry) -> ToilUsage:
    usage = ToilUsage(
        user_id=entry.user_id,
        date=entry.date,
        hours=entry.hours,
        entry_id=entry.id,
        month_year=month_year_of(entry.date),
    )
    await store.put(f"toilusage:{usage.id}", usage)
    return usage


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def toggle_action(
    session: AsyncSession,
    user_id: uuid.UUID,
    day: date,
    action_type: ActionType,
    desired_state: bool,
) -> ToggleResult:
    """Drive one day action towards desired_state.

    Idempotent: asking for the state a key is already in changes nothing.
    Switching sick, leave or TOIL on switches the other two off in the same commit.
    """
    store = LedgerStore(session)
    key: ToggleKey = (user_id, day, action_type)
    siblings: list[ToggleKey] = []
    if desired_state and action_type in EXCLUSIVE_ACTIONS:
        siblings = [(user_id, day, other) for other in EXCLUSIVE_ACTIONS - {action_type}]
    guard = get_toggle_guard()
    acquired = guard.try_hold(siblings)
    if acquired and not guard.try_acquire(key):
        guard.release(*siblings)
        acquired = False
    if not acquired:
        state = await store.get(action_key(user_id, day, action_type))
        logger.debug("Dropped overlapping %s toggle for user=%s on %s", action_type, user_id, day)
        return ToggleResult(
            success=False,
            active=bool(state and state.active),
            entry_id=state.entry_id if state is not None else None,
            dropped=True,
        )

    try:
        if desired_state:
            result, changed = await _switch_on(store, user_id, day, action_type)
        else:
            result, changed = await _switch_off(store, user_id, day, action_type)
    finally:
        guard.release(key, *siblings)

    if changed:
        await _publish_toggled(session, user_id, day, action_type, result)
    return result


async def get_day_actions(session: AsyncSession, user_id: uuid.UUID, day: date) -> DayActionsResponse:
    """Current state of every day action for one day."""
    states = {s.action_type: s for s in await LedgerStore(session).query_action_states(user_id, day)}
    actions = []
    for action_type in ActionType:
        state = states.get(action_type.value)
        actions.append(
            DayActionResponse(
                action_type=action_type,
                active=bool(state and state.active),
                entry_id=state.entry_id if state is not None else None,
            )
        )
    return DayActionsResponse(user_id=user_id, date=day, actions=actions)


async def cleanup_duplicates(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Collapse duplicate synthetic entries to the earliest one per day and job number.

    Day action states that tracked a removed entry are pointed at the survivor,
    and duplicate usages of one entry are dropped. Returns the number of
    entries removed. Storage failures are logged and reported as 0.
    """
    store = LedgerStore(session)
    try:
        entries = await store.query_synthetic_entries(user_id, [j.value for j in JobNumber])
        groups: dict[tuple[date, str | None], list[TimeEntry]] = defaultdict(list)
        for entry in entries:
            groups[(entry.date, entry.job_number)].append(entry)

        survivor_of: dict[uuid.UUID, uuid.UUID] = {}
        removed: list[TimeEntry] = []
        for group in groups.values():
            keep = group[0]
            for extra in group[1:]:
                survivor_of[extra.id] = keep.id
                removed.append(extra)

        for state in await store.query_action_states_for_entries(list(survivor_of)):
            state.entry_id = survivor_of[state.entry_id]  # ty: ignore[invalid-argument-type]
            state.updated_at = now_utc()
            await store.put(action_key(state.user_id, state.date, state.action_type), state)

        touched_months = {month_year_of(e.date) for e in removed if e.job_number == JobNumber.TOIL.value}
        if removed:
            await store.delete_usages_for_entries([e.id for e in removed])
            for entry in removed:
                write_audit_log(
                    session,
                    actor_id=user_id,
                    entity_type=AuditEntityType.SYNTHETIC_ENTRY,
                    entity_id=entry.id,
                    action=AuditAction.DEDUPLICATE,
                    before_json=model_to_audit_dict(entry),
                )
            await store.delete_many(removed)

        survivors = [group[0].id for group in groups.values() if group[0].job_number == JobNumber.TOIL.value]
        usages_by_entry: dict[uuid.UUID, list[ToilUsage]] = defaultdict(list)
        for usage in await store.query_usages_for_entries(survivors):
            usages_by_entry[usage.entry_id].append(usage)
        extra_usages = [u for usages in usages_by_entry.values() for u in usages[1:]]
        touched_months.update(u.month_year for u in extra_usages)
        await store.delete_many(extra_usages)

        await store.commit()
    except StorageError:
        await store.rollback()
        logger.warning("Duplicate cleanup failed for user=%s", user_id)
        return 0

    if removed or extra_usages:
        logger.info(
            "Removed %d duplicate synthetic entries and %d duplicate usages for user=%s",
            len(removed),
            len(extra_usages),
            user_id,
        )
    for month in sorted(touched_months):
        await publish_toil_updated(session, user_id, month)
    return len(removed)
