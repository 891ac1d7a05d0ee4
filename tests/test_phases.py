from __future__ import annotations

import pytest

from buildtrack.services.phases import DEFAULT_PHASES, creates_cycle
from helpers import create_expense, create_project, list_phases


def test_creates_cycle() -> None:
    graph = {"b": ["a"], "c": ["b"]}
    # a -> c would close a -> c -> b -> a
    assert creates_cycle("a", ["c"], graph)
    assert not creates_cycle("c", ["a"], graph)
    assert creates_cycle("a", ["a"], {})


@pytest.mark.asyncio
async def test_project_gets_default_phases(client, owner) -> None:
    project = await create_project(client, owner)
    assert project["phases_created"] == len(DEFAULT_PHASES)

    phases = await list_phases(client, owner, project["id"])
    assert [p["phase_code"] for p in phases] == ["PHASE-01", "PHASE-02", "PHASE-03", "PHASE-04"]
    assert phases[0]["financial_summary"]["budget_total"] == 0


@pytest.mark.asyncio
async def test_phase_start_waits_for_dependencies(client, owner, project) -> None:
    phases = await list_phases(client, owner, project["id"])
    substructure = phases[0]

    r = await client.post(
        "/api/phases",
        json={
            "project_id": project["id"],
            "phase_name": "External Works",
            "depends_on": [substructure["id"]],
            "budget_allocation": {"materials": 40_000},
        },
        headers=owner,
    )
    assert r.status_code == 201, r.text
    external = r.json()["data"]
    assert external["sequence"] == 5
    assert external["phase_code"] == "PHASE-05"
    assert external["budget_allocation"]["total"] == 40_000

    r = await client.patch(
        f"/api/phases/{external['id']}", json={"status": "in_progress"}, headers=owner
    )
    assert r.status_code == 400
    blocking = r.json()["details"]["blocking_phases"]
    assert [b["phase_id"] for b in blocking] == [substructure["id"]]

    r = await client.patch(
        f"/api/phases/{substructure['id']}", json={"status": "completed"}, headers=owner
    )
    assert r.status_code == 200
    assert r.json()["data"]["completion_percentage"] == 100

    r = await client.get(f"/api/phases/{external['id']}/can-start", headers=owner)
    assert r.json()["data"]["can_start"] is True

    r = await client.patch(
        f"/api/phases/{external['id']}", json={"status": "in_progress"}, headers=owner
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "in_progress"
    assert r.json()["data"]["start_date"] is not None


@pytest.mark.asyncio
async def test_circular_dependency_is_rejected(client, owner, project) -> None:
    first, second = (await list_phases(client, owner, project["id"]))[:2]
    r = await client.patch(
        f"/api/phases/{second['id']}", json={"depends_on": [first["id"]]}, headers=owner
    )
    assert r.status_code == 200

    r = await client.patch(
        f"/api/phases/{first['id']}", json={"depends_on": [second["id"]]}, headers=owner
    )
    assert r.status_code == 400
    assert "Circular dependency" in r.json()["error"]


@pytest.mark.asyncio
async def test_clerk_cannot_create_phase(client, auth, project) -> None:
    r = await client.post(
        "/api/phases",
        json={"project_id": project["id"], "phase_name": "Landscaping"},
        headers=auth("clerk"),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_partial_budget_edit_keeps_total(client, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    r = await client.patch(
        f"/api/phases/{phase['id']}",
        json={"budget_allocation": {"total": 500_000}},
        headers=owner,
    )
    assert r.json()["data"]["budget_allocation"]["total"] == 500_000

    r = await client.patch(
        f"/api/phases/{phase['id']}",
        json={"budget_allocation": {"materials": 300_000}},
        headers=owner,
    )
    budget = r.json()["data"]["budget_allocation"]
    assert budget["materials"] == 300_000
    assert budget["total"] == 500_000


@pytest.mark.asyncio
async def test_delete_blocked_while_costs_reference_phase(client, auth, owner, project) -> None:
    r = await client.post(
        "/api/phases",
        json={"project_id": project["id"], "phase_name": "External Works"},
        headers=owner,
    )
    phase = r.json()["data"]
    expense = await create_expense(client, owner, project["id"], phase_id=phase["id"])
    r = await client.post(
        "/api/labour/entries",
        json={
            "project_id": project["id"],
            "phase_id": phase["id"],
            "worker_name": "Casual Hand",
            "hourly_rate": 250,
            "total_hours": 8,
        },
        headers=auth("clerk"),
    )
    entry = r.json()["data"]

    r = await client.delete(f"/api/phases/{phase['id']}", headers=owner)
    assert r.status_code == 400
    assert r.json()["error"] == (
        "Cannot delete phase with 1 expense(s) and 1 labour entry(ies). "
        "Reassign or archive them first."
    )

    await client.post(f"/api/expenses/{expense['id']}/archive", headers=owner)
    await client.delete(f"/api/labour/entries/{entry['id']}", headers=owner)

    r = await client.delete(f"/api/phases/{phase['id']}", headers=owner)
    assert r.status_code == 200
    assert phase["id"] not in [p["id"] for p in await list_phases(client, owner, project["id"])]

    r = await client.get(
        "/api/audit-logs",
        params={"entity_type": "PHASE", "entity_id": phase["id"], "action": "DELETED"},
        headers=owner,
    )
    logs = r.json()["data"]["logs"]
    assert len(logs) == 1
    assert logs[0]["changes"]["deleted"]["phase_name"] == "External Works"
