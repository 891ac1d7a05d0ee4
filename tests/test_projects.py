from __future__ import annotations

import pytest

from helpers import create_expense, create_project


@pytest.mark.asyncio
async def test_create_project_normalizes_budget(client, owner) -> None:
    project = await create_project(client, owner)
    assert project["status"] == "planning"
    assert project["budget"] == {
        "materials": 600_000,
        "labour": 250_000,
        "equipment": 0,
        "subcontractors": 0,
        "indirect": 0,
        "contingency": 50_000,
        "total": 900_000,
    }
    assert project["capital_info"]["total_invested"] == 0
    assert "budget_warning" not in project


@pytest.mark.asyncio
async def test_zero_budget_warns(client, owner) -> None:
    project = await create_project(client, owner, budget=None, auto_create_phases=False)
    assert project["budget_warning"]["type"] == "zero_budget"
    assert "phases_created" not in project


@pytest.mark.asyncio
async def test_duplicate_code_rejected(client, owner) -> None:
    await create_project(client, owner)
    r = await client.post(
        "/api/projects", json={"project_code": "PRJ-001", "project_name": "Again"}, headers=owner
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Project with this code already exists"


@pytest.mark.asyncio
async def test_validation_errors_use_envelope(client, owner) -> None:
    r = await client.post("/api/projects", json={"project_name": "No code"}, headers=owner)
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_FAILED"
    assert any(e.startswith("project_code") for e in body["details"]["errors"])


@pytest.mark.asyncio
async def test_clerk_cannot_create_project(client, auth) -> None:
    r = await client.post(
        "/api/projects", json={"project_code": "X", "project_name": "X"}, headers=auth("clerk")
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_update_tracks_changes(client, owner, project) -> None:
    r = await client.patch(
        f"/api/projects/{project['id']}",
        json={"status": "active", "budget": {"equipment": 100_000}},
        headers=owner,
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "active"
    assert data["budget"]["equipment"] == 100_000
    assert data["budget"]["total"] == 900_000

    r = await client.get(
        "/api/audit-logs",
        params={"entity_id": project["id"], "action": "updated"},
        headers=owner,
    )
    changes = r.json()["data"]["logs"][0]["changes"]
    assert changes["status"] == {"old_value": "planning", "new_value": "active"}

    r = await client.patch(f"/api/projects/{project['id']}", json={}, headers=owner)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_archive_then_archive_again(client, owner, project) -> None:
    r = await client.delete(f"/api/projects/{project['id']}", headers=owner)
    assert r.status_code == 200
    assert r.json()["data"]["outcome"] == "archived"

    r = await client.delete(f"/api/projects/{project['id']}", headers=owner)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_force_delete_blocked_by_dependents(client, owner, project) -> None:
    await create_expense(client, owner, project["id"])
    r = await client.delete(
        f"/api/projects/{project['id']}", params={"force": "true"}, headers=owner
    )
    assert r.status_code == 409
    assert r.json()["details"]["dependents"] == {"expenses": 1}


@pytest.mark.asyncio
async def test_force_delete_removes_empty_project(client, owner, project) -> None:
    r = await client.delete(
        f"/api/projects/{project['id']}", params={"force": "true"}, headers=owner
    )
    assert r.status_code == 200
    assert r.json()["data"]["outcome"] == "deleted"

    r = await client.get(f"/api/projects/{project['id']}", headers=owner)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_capital_contributions(client, auth, owner, project) -> None:
    for investor, amount, funding in (("Acme Bank", 600_000, "loan"), ("Family Trust", 400_000, "equity")):
        r = await client.post(
            f"/api/projects/{project['id']}/capital",
            json={"investor_name": investor, "amount": amount, "funding_type": funding},
            headers=owner,
        )
        assert r.status_code == 201

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=auth("investor"))
    assert r.status_code == 200
    finances = r.json()["data"]
    assert finances["total_invested"] == 1_000_000
    assert finances["total_loans"] == 600_000
    assert finances["investor_count"] == 2
    assert len(finances["contributions"]) == 2

    r = await client.post(
        f"/api/projects/{project['id']}/capital",
        json={"investor_name": "Someone", "amount": 1, "funding_type": "equity"},
        headers=auth("pm"),
    )
    assert r.status_code == 403

    r = await client.get(f"/api/projects/{project['id']}", headers=owner)
    statistics = r.json()["data"]["statistics"]
    assert statistics["total_invested"] == 1_000_000
    assert statistics["budget_vs_capital_warning"] is None
