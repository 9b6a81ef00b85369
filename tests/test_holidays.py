"""Public holiday API, and holidays counting as special days for accrual."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from toil_engine.services.audit import audit_trail

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

ADMIN_ID = uuid.uuid4()
MEMBER_ID = uuid.uuid4()
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "admin"}
MEMBER_HEADERS = {"X-User-Id": str(MEMBER_ID), "X-Role": "team-member"}


async def test_create_and_list_holidays(async_client: AsyncClient) -> None:
    for day, name in [("2025-12-25", "Christmas Day"), ("2025-04-25", "Anzac Day"), ("2026-01-01", "New Year")]:
        resp = await async_client.post("/holidays", json={"date": day, "name": name}, headers=ADMIN_HEADERS)
        assert resp.status_code == 201

    resp = await async_client.get("/holidays", headers=MEMBER_HEADERS)
    assert resp.status_code == 200
    assert [h["name"] for h in resp.json()["items"]] == ["Anzac Day", "Christmas Day", "New Year"]

    resp = await async_client.get("/holidays", params={"year": 2025}, headers=MEMBER_HEADERS)
    assert resp.json()["total"] == 2


async def test_duplicate_holiday_date_conflicts(async_client: AsyncClient) -> None:
    payload = {"date": "2025-12-25", "name": "Christmas Day"}
    await async_client.post("/holidays", json=payload, headers=ADMIN_HEADERS)

    resp = await async_client.post("/holidays", json=payload, headers=ADMIN_HEADERS)

    assert resp.status_code == 409
    assert resp.json()["error"] == "AppError"


async def test_team_member_cannot_manage_holidays(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/holidays", json={"date": "2025-12-25", "name": "Christmas Day"}, headers=MEMBER_HEADERS
    )
    assert resp.status_code == 403


async def test_delete_holiday_is_audited(async_client: AsyncClient, db_session: AsyncSession) -> None:
    created = await async_client.post(
        "/holidays", json={"date": "2025-12-25", "name": "Christmas Day"}, headers=ADMIN_HEADERS
    )
    holiday_id = created.json()["id"]

    resp = await async_client.delete(f"/holidays/{holiday_id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 204

    resp = await async_client.delete(f"/holidays/{holiday_id}", headers=ADMIN_HEADERS)
    assert resp.status_code == 404

    trail = await audit_trail(db_session, uuid.UUID(holiday_id))
    assert sorted(a.action for a in trail) == ["CREATE", "DELETE"]


async def test_hours_on_a_holiday_all_count_as_toil(async_client: AsyncClient) -> None:
    await async_client.post("/holidays", json={"date": "2025-05-14", "name": "Show Day"}, headers=ADMIN_HEADERS)

    resp = await async_client.post(
        f"/users/{MEMBER_ID}/entries",
        json={"date": "2025-05-14", "hours": 4.0, "job_number": "J-100"},
        headers=MEMBER_HEADERS,
    )
    assert resp.status_code == 201

    summary = await async_client.get(
        f"/users/{MEMBER_ID}/toil/summary", params={"month": "2025-05"}, headers=MEMBER_HEADERS
    )
    assert summary.json()["accrued"] == 4.0


async def test_adding_a_holiday_recomputes_logged_days(async_client: AsyncClient) -> None:
    await async_client.post(
        f"/users/{MEMBER_ID}/entries",
        json={"date": "2025-05-14", "hours": 8.0, "job_number": "J-100"},
        headers=MEMBER_HEADERS,
    )
    summary_url = f"/users/{MEMBER_ID}/toil/summary"
    before = await async_client.get(summary_url, params={"month": "2025-05"}, headers=MEMBER_HEADERS)
    assert before.json()["accrued"] == 0.5

    created = await async_client.post(
        "/holidays", json={"date": "2025-05-14", "name": "Show Day"}, headers=ADMIN_HEADERS
    )
    during = await async_client.get(summary_url, params={"month": "2025-05"}, headers=MEMBER_HEADERS)
    assert during.json()["accrued"] == 8.0

    await async_client.delete(f"/holidays/{created.json()['id']}", headers=ADMIN_HEADERS)
    after = await async_client.get(summary_url, params={"month": "2025-05"}, headers=MEMBER_HEADERS)
    assert after.json()["accrued"] == 0.5
