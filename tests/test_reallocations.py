from __future__ import annotations

import pytest

from helpers import list_phases


async def _allocate(client, headers, phase_id, total) -> None:
    r = await client.patch(
        f"/api/phases/{phase_id}", json={"budget_allocation": {"total": total}}, headers=headers
    )
    assert r.status_code == 200, r.text


async def _request(client, headers, project_id, **overrides):
    body = {
        "project_id": project_id,
        "reallocation_type": "phase_to_phase",
        "amount": 40_000,
        "reason": "Superstructure steel price rise",
    }
    body.update(overrides)
    return await client.post("/api/budget-reallocations", json=body, headers=headers)


@pytest.mark.asyncio
async def test_phase_to_phase_moves_allocation_on_approval(client, auth, owner, project) -> None:
    source, target = (await list_phases(client, owner, project["id"]))[:2]
    await _allocate(client, owner, source["id"], 100_000)

    r = await _request(
        client, auth("accountant"), project["id"], from_phase_id=source["id"], to_phase_id=target["id"]
    )
    assert r.status_code == 201, r.text
    request = r.json()["data"]
    assert request["status"] == "pending"
    assert request["requested_by"] == "accountant-user"

    r = await client.post(
        f"/api/budget-reallocations/{request['id']}/approve",
        json={"notes": "Agreed at site meeting"},
        headers=auth("pm"),
    )
    assert r.status_code == 200, r.text
    executed = r.json()["data"]
    assert executed["status"] == "executed"
    assert executed["approved_by"] == "pm-user"
    assert executed["executed_at"] is not None

    phases = {p["id"]: p for p in await list_phases(client, owner, project["id"])}
    assert phases[source["id"]]["budget_allocation"]["total"] == 60_000
    assert phases[source["id"]]["financial_summary"]["remaining"] == 60_000
    assert phases[target["id"]]["budget_allocation"]["total"] == 40_000

    r = await client.get(f"/api/budget-reallocations/{request['id']}", headers=auth("investor"))
    assert [a["action"] for a in r.json()["data"]["approvals"]] == ["APPROVED"]

    r = await client.post(f"/api/budget-reallocations/{request['id']}/approve", headers=auth("pm"))
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot approve reallocation with status: executed"


@pytest.mark.asyncio
async def test_source_phase_needs_headroom(client, owner, project) -> None:
    source, target = (await list_phases(client, owner, project["id"]))[:2]
    await _allocate(client, owner, source["id"], 100_000)

    r = await _request(
        client,
        owner,
        project["id"],
        from_phase_id=source["id"],
        to_phase_id=target["id"],
        amount=150_000,
    )
    assert r.status_code == 400
    assert r.json()["error"] == (
        "Insufficient budget in source phase. Available: 100,000.00, Requested: 150,000.00"
    )


@pytest.mark.asyncio
async def test_project_to_phase_draws_on_unallocated_budget(client, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    await _allocate(client, owner, phase["id"], 100_000)

    r = await _request(
        client,
        owner,
        project["id"],
        reallocation_type="project_to_phase",
        to_phase_id=phase["id"],
        amount=850_000,
    )
    assert r.status_code == 400
    assert r.json()["details"] == {"available": 800_000, "requested": 850_000}

    r = await _request(
        client,
        owner,
        project["id"],
        reallocation_type="project_to_phase",
        to_phase_id=phase["id"],
        amount=50_000,
    )
    assert r.status_code == 201
    r = await client.post(f"/api/budget-reallocations/{r.json()['data']['id']}/approve", headers=owner)
    assert r.status_code == 200

    phase = (await list_phases(client, owner, project["id"]))[0]
    assert phase["budget_allocation"]["total"] == 150_000
    r = await client.get(f"/api/projects/{project['id']}", headers=owner)
    assert r.json()["data"]["budget"]["total"] == 900_000


@pytest.mark.asyncio
async def test_endpoints_must_match_reallocation_type(client, owner, project) -> None:
    first, second = (await list_phases(client, owner, project["id"]))[:2]

    r = await _request(
        client,
        owner,
        project["id"],
        reallocation_type="phase_to_project",
        from_phase_id=first["id"],
        to_phase_id=second["id"],
    )
    assert r.status_code == 400
    assert r.json()["details"]["errors"] == [
        "Target phase should not be provided for phase-to-project reallocation"
    ]

    r = await _request(client, owner, project["id"], from_phase_id=first["id"], to_phase_id=first["id"])
    assert r.status_code == 400
    assert "Source and target phases cannot be the same" in r.json()["details"]["errors"]

    r = await _request(client, owner, project["id"], reason="  ", from_phase_id=first["id"])
    assert r.status_code == 400
    assert r.json()["error"] == "Reason is required"


@pytest.mark.asyncio
async def test_reject_and_list_by_status(client, auth, owner, project) -> None:
    source, target = (await list_phases(client, owner, project["id"]))[:2]
    await _allocate(client, owner, source["id"], 100_000)
    r = await _request(client, owner, project["id"], from_phase_id=source["id"], to_phase_id=target["id"])
    request = r.json()["data"]

    r = await client.post(
        f"/api/budget-reallocations/{request['id']}/reject", json={}, headers=auth("accountant")
    )
    assert r.status_code == 400

    r = await client.post(
        f"/api/budget-reallocations/{request['id']}/reject",
        json={"reason": "Keep contingency in substructure"},
        headers=auth("accountant"),
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"
    assert r.json()["data"]["rejection_reason"] == "Keep contingency in substructure"

    r = await client.get(
        "/api/budget-reallocations",
        params={"phase_id": target["id"], "status": "rejected"},
        headers=auth("clerk"),
    )
    body = r.json()["data"]
    assert [x["id"] for x in body["reallocations"]] == [request["id"]]
    assert body["pagination"]["total"] == 1

    phase = (await list_phases(client, owner, project["id"]))[0]
    assert phase["budget_allocation"]["total"] == 100_000


@pytest.mark.asyncio
async def test_clerk_cannot_request_reallocation(client, auth, owner, project) -> None:
    source, target = (await list_phases(client, owner, project["id"]))[:2]
    r = await _request(
        client, auth("clerk"), project["id"], from_phase_id=source["id"], to_phase_id=target["id"]
    )
    assert r.status_code == 403
