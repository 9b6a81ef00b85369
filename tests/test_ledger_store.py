"""Tests for keyed ledger access and storage failure mapping."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest

from toil_engine.exceptions import KeyConflictError, ValidationError
from toil_engine.models.action_state import DayActionState
from toil_engine.models.enums import ProcessingStatus
from toil_engine.models.processing import ToilProcessingRecord
from toil_engine.models.time_entry import TimeEntry
from toil_engine.models.toil import ToilRecord, ToilUsage
from toil_engine.services.ledger_store import LedgerStore, action_key, key_for, processing_key

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

USER_ID = uuid.uuid4()
DAY = date(2025, 4, 7)


def _processing(status: ProcessingStatus = ProcessingStatus.PENDING, month: str = "2025-04") -> ToilProcessingRecord:
    return ToilProcessingRecord(
        user_id=USER_ID,
        month=month,
        total_hours=4.0,
        rollover_hours=4.0,
        surplus_hours=0.0,
        status=status,
    )


def test_key_for_each_record_type() -> None:
    entry = TimeEntry(user_id=USER_ID, date=DAY, hours=1.0)
    state = DayActionState(user_id=USER_ID, date=DAY, action_type="sick")

    assert key_for(entry) == f"entry:{entry.id}"
    assert key_for(state) == f"action:{USER_ID}:2025-04-07:sick"
    assert key_for(_processing()) == f"toil:{USER_ID}:2025-04"
    assert action_key(USER_ID, DAY, "toil") == f"action:{USER_ID}:2025-04-07:toil"
    assert processing_key(USER_ID, "2025-04") == f"toil:{USER_ID}:2025-04"


async def test_put_get_delete_entry(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    entry = TimeEntry(user_id=USER_ID, date=DAY, hours=7.6, job_number="SICK", synthetic=True)

    await store.put(f"entry:{entry.id}", entry)
    await store.commit()

    fetched = await store.get(f"entry:{entry.id}")
    assert fetched is not None
    assert fetched.hours == 7.6

    assert await store.delete(f"entry:{entry.id}") is True
    await store.commit()
    assert await store.get(f"entry:{entry.id}") is None
    assert await store.delete(f"entry:{entry.id}") is False


async def test_put_rejects_mismatched_key(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    entry = TimeEntry(user_id=USER_ID, date=DAY, hours=1.0)

    with pytest.raises(ValidationError):
        await store.put(f"toilrecord:{entry.id}", entry)


@pytest.mark.parametrize(
    "key",
    ["entry", "entry:not-a-uuid", "unknown:1234", f"action:{USER_ID}:yesterday:sick", f"toil:{USER_ID}"],
)
async def test_get_rejects_malformed_keys(db_session: AsyncSession, key: str) -> None:
    with pytest.raises(ValidationError):
        await LedgerStore(db_session).get(key)


async def test_action_key_round_trip(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    state = DayActionState(user_id=USER_ID, date=DAY, action_type="leave", active=True)
    await store.put(action_key(USER_ID, DAY, "leave"), state)
    await store.commit()

    fetched = await store.get(action_key(USER_ID, DAY, "leave"))
    assert fetched is not None
    assert fetched.active is True
    assert await store.get(action_key(USER_ID, DAY, "sick")) is None


async def test_processing_key_skips_rejected_records(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    rejected = _processing(ProcessingStatus.REJECTED)
    await store.put(key_for(rejected), rejected)
    await store.commit()

    assert await store.get(processing_key(USER_ID, "2025-04")) is None

    pending = _processing()
    await store.put(key_for(pending), pending)
    await store.commit()

    current = await store.get(processing_key(USER_ID, "2025-04"))
    assert current is not None
    assert current.id == pending.id


async def test_second_open_processing_record_conflicts(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    first = _processing()
    await store.put(key_for(first), first)
    await store.commit()

    with pytest.raises(KeyConflictError):
        await store.put(key_for(_processing()), _processing())

    # The failed write was rolled back; the first record is intact.
    assert (await store.get(processing_key(USER_ID, "2025-04"))).id == first.id


async def test_query_by_user_month(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    other_user = uuid.uuid4()
    records = [
        ToilRecord(user_id=USER_ID, date=DAY, hours=2.0, month_year="2025-04"),
        ToilRecord(user_id=USER_ID, date=date(2025, 5, 1), hours=3.0, month_year="2025-05"),
        ToilRecord(user_id=other_user, date=DAY, hours=5.0, month_year="2025-04"),
    ]
    usage = ToilUsage(user_id=USER_ID, date=DAY, hours=1.0, entry_id=uuid.uuid4(), month_year="2025-04")
    for record in [*records, usage]:
        await store.put(key_for(record), record)
    await store.commit()

    ledger = await store.query_by_user_month(USER_ID, "2025-04")

    assert [r.hours for r in ledger.toil_records] == [2.0]
    assert [u.hours for u in ledger.usages] == [1.0]
    assert ledger.processing_records == []


async def test_synthetic_entry_queries(db_session: AsyncSession) -> None:
    store = LedgerStore(db_session)
    worked = TimeEntry(user_id=USER_ID, date=DAY, hours=8.0, job_number="J-7")
    sick = TimeEntry(user_id=USER_ID, date=DAY, hours=7.6, job_number="SICK", synthetic=True)
    toil = TimeEntry(user_id=USER_ID, date=date(2025, 4, 8), hours=9.0, job_number="TOIL", synthetic=True)
    for entry in (worked, sick, toil):
        await store.put(key_for(entry), entry)
    await store.commit()

    assert {e.id for e in await store.query_synthetic_entries(USER_ID, ["SICK", "TOIL"])} == {sick.id, toil.id}
    assert [e.id for e in await store.query_synthetic_entries(USER_ID, ["SICK", "TOIL"], DAY)] == [sick.id]
    assert [e.id for e in await store.query_entries_by_user_and_job_number(USER_ID, "TOIL")] == [toil.id]
    assert len(await store.query_entries_by_user_and_date(USER_ID, DAY)) == 2
    assert await store.users_with_synthetic_entries(["SICK", "TOIL", "LEAVE"]) == [USER_ID]
