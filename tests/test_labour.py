from __future__ import annotations

import pytest

from helpers import list_phases


async def _worker(client, headers, **overrides) -> dict:
    body = {
        "employee_id": "EMP-001",
        "worker_name": "Juma Otieno",
        "employment_type": "casual",
        "profession": "Mason",
        "default_hourly_rate": 500,
        "default_daily_rate": 4000,
        "skill_types": ["masonry"],
    }
    body.update(overrides)
    r = await client.post("/api/labour/workers", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def _entry(client, headers, project_id, **overrides) -> dict:
    body = {
        "project_id": project_id,
        "entry_date": "2026-03-02",
        "clock_in": "2026-03-02T07:00:00",
        "clock_out": "2026-03-02T18:00:00",
        "break_duration": 60,
        "task_description": "Blockwork, ground floor",
    }
    body.update(overrides)
    r = await client.post("/api/labour/entries", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest.mark.asyncio
async def test_worker_register(client, auth) -> None:
    pm = auth("pm")
    worker = await _worker(client, pm)
    assert worker["warnings"] == []
    assert worker["status"] == "active"

    r = await client.post(
        "/api/labour/workers",
        json={"employee_id": "EMP-001", "worker_name": "Someone Else"},
        headers=pm,
    )
    assert r.status_code == 400

    professional = await _worker(
        client, pm, employee_id="EMP-002", worker_type="professional", profession=None
    )
    assert professional["warnings"] == ["Professional workers should have a profession specified"]

    r = await client.post(
        "/api/labour/workers",
        json={"employee_id": "EMP-003", "worker_name": "Clerk Hire"},
        headers=auth("clerk"),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_worker_termination_must_follow_hire(client, auth) -> None:
    r = await client.post(
        "/api/labour/workers",
        json={
            "employee_id": "EMP-009",
            "worker_name": "Late Starter",
            "hire_date": "2026-05-01",
            "termination_date": "2026-04-01",
        },
        headers=auth("pm"),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "termination_date must be after hire_date"


@pytest.mark.asyncio
async def test_entry_takes_worker_defaults_and_prices_overtime(client, auth, project) -> None:
    worker = await _worker(client, auth("pm"))
    phase = (await list_phases(client, auth("pm"), project["id"]))[0]

    entry = await _entry(
        client, auth("clerk"), project["id"], worker_id=worker["id"], phase_id=phase["id"]
    )
    assert entry["worker_name"] == "Juma Otieno"
    assert entry["status"] == "draft"
    assert entry["total_hours"] == 10
    assert entry["regular_hours"] == 8
    assert entry["overtime_hours"] == 2
    assert entry["total_cost"] == 5500


@pytest.mark.asyncio
async def test_entry_needs_a_worker_name(client, auth, project) -> None:
    r = await client.post(
        "/api/labour/entries",
        json={"project_id": project["id"], "total_hours": 8, "hourly_rate": 300},
        headers=auth("clerk"),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_clock_out_must_follow_clock_in(client, auth, project) -> None:
    r = await client.post(
        "/api/labour/entries",
        json={
            "project_id": project["id"],
            "worker_name": "Casual Hand",
            "hourly_rate": 300,
            "clock_in": "2026-03-02T17:00:00",
            "clock_out": "2026-03-02T08:00:00",
        },
        headers=auth("clerk"),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "clock_out must be after clock_in"


@pytest.mark.asyncio
async def test_long_shift_warns(client, auth, project) -> None:
    entry = await _entry(
        client,
        auth("supervisor"),
        project["id"],
        worker_name="Night Guard",
        hourly_rate=200,
        clock_in=None,
        clock_out=None,
        total_hours=14,
    )
    assert entry["warnings"] == ["Total hours exceeds 12 hours. Please verify this is correct."]
    assert entry["total_cost"] == 8 * 200 + 6 * 200 * 1.5


@pytest.mark.asyncio
async def test_approval_feeds_phase_spending_and_locks_entry(client, auth, owner, project) -> None:
    worker = await _worker(client, auth("pm"))
    phase = (await list_phases(client, owner, project["id"]))[0]
    entry = await _entry(
        client, auth("clerk"), project["id"], worker_id=worker["id"], phase_id=phase["id"]
    )

    r = await client.post(f"/api/labour/entries/{entry['id']}/approve", headers=auth("pm"))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "approved"

    r = await client.get(f"/api/phases/{phase['id']}/financial-summary", headers=owner)
    assert r.json()["data"]["actual_spending"]["labour"] == 5500

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=owner)
    assert r.json()["data"]["breakdown"]["labour"] == 5500

    r = await client.patch(
        f"/api/labour/entries/{entry['id']}", json={"notes": "late"}, headers=auth("clerk")
    )
    assert r.status_code == 400
    assert r.json()["error"].startswith("Cannot edit labour entry with status approved")

    r = await client.post(f"/api/labour/entries/{entry['id']}/approve", headers=auth("pm"))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_reject_requires_reason(client, auth, project) -> None:
    entry = await _entry(client, auth("clerk"), project["id"], worker_name="Casual Hand", hourly_rate=250)

    r = await client.post(f"/api/labour/entries/{entry['id']}/reject", json={}, headers=auth("pm"))
    assert r.status_code == 400

    r = await client.post(
        f"/api/labour/entries/{entry['id']}/reject",
        json={"reason": "Not on site that day"},
        headers=auth("pm"),
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"


@pytest.mark.asyncio
async def test_update_recomputes_cost(client, auth, project) -> None:
    entry = await _entry(client, auth("clerk"), project["id"], worker_name="Casual Hand", hourly_rate=250)
    assert entry["total_cost"] == 2750

    r = await client.patch(
        f"/api/labour/entries/{entry['id']}", json={"hourly_rate": 300}, headers=auth("clerk")
    )
    assert r.status_code == 200
    assert r.json()["data"]["total_cost"] == 8 * 300 + 2 * 300 * 1.5


@pytest.mark.asyncio
async def test_entry_list_summary(client, auth, project) -> None:
    await _entry(client, auth("clerk"), project["id"], worker_name="A Hand", hourly_rate=100)
    await _entry(client, auth("clerk"), project["id"], worker_name="B Hand", hourly_rate=200)

    r = await client.get(
        "/api/labour/entries", params={"project_id": project["id"], "status": "draft"}, headers=auth("pm")
    )
    body = r.json()["data"]
    assert body["pagination"]["total"] == 2
    assert body["summary"]["total_hours"] == 20
    assert body["summary"]["total_cost"] == (8 * 100 + 2 * 150) + (8 * 200 + 2 * 300)


@pytest.mark.asyncio
async def test_worker_skill_filter_pages_over_matches(client, auth) -> None:
    pm = auth("pm")
    await _worker(client, pm, employee_id="EMP-001", worker_name="Amani Mason")
    await _worker(client, pm, employee_id="EMP-002", worker_name="Baraka Welder", skill_types=["welding"])
    await _worker(client, pm, employee_id="EMP-003", worker_name="Chege Mason")

    r = await client.get(
        "/api/labour/workers", params={"skill_type": "masonry", "limit": 1}, headers=pm
    )
    body = r.json()["data"]
    assert [w["worker_name"] for w in body["workers"]] == ["Amani Mason"]
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    r = await client.get(
        "/api/labour/workers", params={"skill_type": "masonry", "limit": 1, "page": 2}, headers=pm
    )
    assert [w["worker_name"] for w in r.json()["data"]["workers"]] == ["Chege Mason"]


@pytest.mark.asyncio
async def test_clerk_cannot_record_decided_status(client, auth, project) -> None:
    r = await client.post(
        "/api/labour/entries",
        json={
            "project_id": project["id"],
            "worker_name": "Casual Hand",
            "hourly_rate": 250,
            "total_hours": 8,
            "status": "approved",
        },
        headers=auth("clerk"),
    )
    assert r.status_code == 400
    assert r.json()["error"].startswith("Labour entries cannot be set to approved directly")

    entry = await _entry(client, auth("clerk"), project["id"], worker_name="Casual Hand", hourly_rate=250)
    for status in ("approved", "paid"):
        r = await client.patch(
            f"/api/labour/entries/{entry['id']}", json={"status": status}, headers=auth("clerk")
        )
        assert r.status_code == 400

    r = await client.patch(
        f"/api/labour/entries/{entry['id']}", json={"status": "submitted"}, headers=auth("clerk")
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "submitted"


@pytest.mark.asyncio
async def test_decided_entries_are_locked_for_everyone(client, auth, owner, project) -> None:
    entry = await _entry(client, auth("clerk"), project["id"], worker_name="Casual Hand", hourly_rate=250)
    await client.post(f"/api/labour/entries/{entry['id']}/approve", headers=auth("pm"))

    r = await client.patch(
        f"/api/labour/entries/{entry['id']}", json={"hourly_rate": 1}, headers=owner
    )
    assert r.status_code == 400

    r = await client.delete(f"/api/labour/entries/{entry['id']}", headers=owner)
    assert r.status_code == 400
    assert r.json()["error"] == (
        "Cannot delete labour entry with status approved. Only draft entries can be deleted."
    )


@pytest.mark.asyncio
async def test_only_draft_entries_can_be_deleted(client, auth, project) -> None:
    pm = auth("pm")
    submitted = await _entry(
        client, auth("clerk"), project["id"], worker_name="A Hand", hourly_rate=100, status="submitted"
    )
    draft = await _entry(client, auth("clerk"), project["id"], worker_name="B Hand", hourly_rate=100)

    r = await client.delete(f"/api/labour/entries/{submitted['id']}", headers=pm)
    assert r.status_code == 400

    r = await client.delete(f"/api/labour/entries/{draft['id']}", headers=pm)
    assert r.status_code == 200
    r = await client.get(f"/api/labour/entries/{draft['id']}", headers=pm)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_entry_over_phase_labour_budget_is_rejected(client, auth, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    r = await client.patch(
        f"/api/phases/{phase['id']}", json={"budget_allocation": {"labour": 3_000}}, headers=owner
    )
    assert r.status_code == 200

    r = await client.post(
        "/api/labour/entries",
        json={
            "project_id": project["id"],
            "phase_id": phase["id"],
            "worker_name": "Casual Hand",
            "hourly_rate": 500,
            "total_hours": 10,
        },
        headers=auth("clerk"),
    )
    assert r.status_code == 400
    assert r.json()["error"].startswith("Budget validation failed: Insufficient phase labour budget")
    assert r.json()["details"]["labour_budget"] == {
        "available": 3_000,
        "required": 5_500,
        "budget": 3_000,
    }

    # A shortfall within 5% of the labour allocation is tolerated.
    entry = await _entry(
        client,
        auth("clerk"),
        project["id"],
        phase_id=phase["id"],
        worker_name="Casual Hand",
        hourly_rate=390,
        clock_in=None,
        clock_out=None,
        total_hours=8,
    )
    assert entry["total_cost"] == 3_120
