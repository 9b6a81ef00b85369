"""Seed script for development data.

Run with:  python -m toil_engine.seed   (against a running API)
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"
ADMIN_ID = "00000000-0000-0000-0000-000000000001"
MANAGER_ID = "00000000-0000-0000-0000-000000000002"

# Well-known team member UUIDs
ALICE_ID = "00000000-0000-0000-0000-000000000003"
BOB_ID = "00000000-0000-0000-0000-000000000004"

ADMIN_HEADERS = {"X-User-Id": ADMIN_ID, "X-Role": "admin"}
MANAGER_HEADERS = {"X-User-Id": MANAGER_ID, "X-Role": "manager"}

_WEEKDAY_SHIFT = {"start_time": "08:00", "end_time": "16:45", "lunch": True, "smoko": True}

USERS = [
    {"id": ADMIN_ID, "name": "Ada Admin", "email": "ada@example.com", "fte": 1.0, "role": "admin"},
    {"id": MANAGER_ID, "name": "Max Manager", "email": "max@example.com", "fte": 1.0, "role": "manager"},
    {
        "id": ALICE_ID,
        "name": "Alice Johnson",
        "email": "alice.johnson@example.com",
        "fte": 1.0,
        "schedule": {"days": {str(d): _WEEKDAY_SHIFT for d in range(5)}},
    },
    {
        "id": BOB_ID,
        "name": "Bob Smith",
        "email": "bob.smith@example.com",
        "fte": 0.6,
        "schedule": {"days": {str(d): _WEEKDAY_SHIFT for d in range(3)}},
    },
]


def _headers_for(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-Role": "team-member"}


def _previous_month() -> tuple[str, date]:
    first_of_this_month = date.today().replace(day=1)
    last_month_start = (first_of_this_month - timedelta(days=1)).replace(day=1)
    return last_month_start.strftime("%Y-%m"), last_month_start


def _weekdays(start: date, count: int) -> list[date]:
    days: list[date] = []
    candidate = start
    while len(days) < count:
        if candidate.weekday() < 5:
            days.append(candidate)
        candidate += timedelta(days=1)
    return days


async def _safe_post(
    client: httpx.AsyncClient, url: str, json: dict, label: str, headers: dict[str, str]
) -> dict | None:
    """POST with 409-conflict tolerance for idempotency."""
    resp = await client.post(url, json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (already exists)")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_users(client: httpx.AsyncClient) -> None:
    """Seed the user directory via PUT (upsert)."""
    print("\n--- Seeding users ---")
    for user in USERS:
        body = {k: v for k, v in user.items() if k != "id"}
        resp = await client.put(f"{BASE_URL}/users/{user['id']}", json=body, headers=ADMIN_HEADERS)
        if resp.status_code == 200:
            print(f"  [OK] {user['name']}")
        else:
            print(f"  [ERROR] {user['name']}: {resp.status_code} {resp.text[:200]}")


async def seed_holidays(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding holidays ---")
    year = date.today().year
    for day, name in [(date(year, 1, 1), "New Year's Day"), (date(year, 12, 25), "Christmas Day")]:
        await _safe_post(
            client,
            f"{BASE_URL}/holidays",
            {"date": day.isoformat(), "name": name},
            name,
            ADMIN_HEADERS,
        )


async def seed_overtime(client: httpx.AsyncClient, month_start: date) -> None:
    """Log long days for Alice last month so she has TOIL to close out."""
    print("\n--- Seeding overtime ---")
    for day in _weekdays(month_start, 6):
        await _safe_post(
            client,
            f"{BASE_URL}/users/{ALICE_ID}/entries",
            {"date": day.isoformat(), "hours": 10.0, "job_number": "J-1001", "description": "Release crunch"},
            f"Alice 10h on {day}",
            _headers_for(ALICE_ID),
        )


async def seed_toil_day(client: httpx.AsyncClient, month_start: date) -> None:
    print("\n--- Seeding day actions ---")
    day = _weekdays(month_start, 10)[-1]
    await _safe_post(
        client,
        f"{BASE_URL}/users/{ALICE_ID}/actions/toggle",
        {"date": day.isoformat(), "action_type": "toil", "active": True},
        f"Alice TOIL day on {day}",
        _headers_for(ALICE_ID),
    )


async def seed_month_end(client: httpx.AsyncClient, month: str) -> None:
    """Submit Alice's month and have the manager approve it."""
    print("\n--- Seeding month-end processing ---")
    record = await _safe_post(
        client,
        f"{BASE_URL}/users/{ALICE_ID}/toil/processing",
        {"month": month, "surplus_action": "paid"},
        f"Alice submits {month}",
        _headers_for(ALICE_ID),
    )
    if record:
        resp = await client.post(f"{BASE_URL}/toil/approvals/{record['id']}/approve", headers=MANAGER_HEADERS)
        if resp.status_code == 200:
            print(f"  [OK] Approved Alice's {month} TOIL")
        elif resp.status_code == 409:
            print(f"  [SKIP] Alice's {month} TOIL already decided")
        else:
            print(f"  [ERROR] Approving Alice's {month} TOIL: {resp.status_code}")


async def main() -> None:
    print("=" * 60)
    print("  TOIL Engine: Development Seed Script")
    print("=" * 60)

    month, month_start = _previous_month()
    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_users(client)
        await seed_holidays(client)
        await seed_overtime(client, month_start)
        await seed_toil_day(client, month_start)
        await seed_month_end(client, month)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
