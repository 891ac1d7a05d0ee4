from __future__ import annotations

import pytest

from buildtrack.services.subcontractors import validate_contract
from helpers import list_phases


def test_validate_contract() -> None:
    assert validate_contract({"contract_value": 100, "payment_schedule": [{"amount": 110}]}) == []
    errors = validate_contract(
        {
            "contract_value": 100,
            "payment_schedule": [{"amount": 60}, {"amount": 60}],
            "start_date": 5,
            "end_date": 5,
        }
    )
    assert errors[0] == "end_date must be after start_date"
    assert errors[1].startswith("Payment schedule total (120.00) exceeds contract value")


@pytest.mark.asyncio
async def test_phase_equipment_cost_and_spending(client, auth, owner, project) -> None:
    pm = auth("pm")
    phase = (await list_phases(client, pm, project["id"]))[1]
    r = await client.post(
        "/api/equipment",
        json={
            "project_id": project["id"],
            "phase_id": phase["id"],
            "equipment_name": "Tower crane",
            "equipment_type": "crane",
            "daily_rate": 12_000,
            "start_date": "2026-04-01",
            "end_date": "2026-04-10",
        },
        headers=pm,
    )
    assert r.status_code == 201, r.text
    crane = r.json()["data"]
    assert crane["total_cost"] == 120_000

    r = await client.patch(f"/api/equipment/{crane['id']}", json={"end_date": "2026-04-05"}, headers=pm)
    assert r.json()["data"]["total_cost"] == 60_000

    r = await client.get("/api/equipment", params={"project_id": project["id"]}, headers=pm)
    listed = r.json()["data"]["equipment"]
    assert listed[0]["phase_name"] == "Superstructure"

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=owner)
    assert r.json()["data"]["breakdown"]["equipment"] == 60_000

    r = await client.delete(f"/api/equipment/{crane['id']}", headers=pm)
    assert r.status_code == 403
    r = await client.delete(f"/api/equipment/{crane['id']}", headers=owner)
    assert r.status_code == 200
    r = await client.get(f"/api/equipment/{crane['id']}", headers=owner)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_equipment_scope_rules(client, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    base = {
        "project_id": project["id"],
        "equipment_name": "Site generator",
        "equipment_type": "generator",
        "start_date": "2026-04-01",
    }

    r = await client.post("/api/equipment", json=base, headers=owner)
    assert r.status_code == 400
    assert r.json()["error"] == "phase_id is required for phase-specific equipment"

    r = await client.post(
        "/api/equipment",
        json={**base, "equipment_scope": "site_wide", "phase_id": phase["id"]},
        headers=owner,
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/equipment",
        json={**base, "equipment_scope": "site_wide", "end_date": "2026-03-01"},
        headers=owner,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "end_date must be on or after start_date"

    r = await client.post("/api/equipment", json={**base, "equipment_scope": "site_wide"}, headers=owner)
    assert r.status_code == 201
    assert r.json()["data"]["total_cost"] == 0


@pytest.mark.asyncio
async def test_subcontractor_payments_and_commitments(client, auth, owner, project) -> None:
    pm = auth("pm")
    phase = (await list_phases(client, pm, project["id"]))[2]
    r = await client.post(
        "/api/subcontractors",
        json={
            "project_id": project["id"],
            "phase_id": phase["id"],
            "subcontractor_name": "Umeme Electrical",
            "subcontractor_type": "electrical",
            "contract_value": 300_000,
            "start_date": "2026-05-01",
            "status": "active",
            "payment_schedule": [
                {"milestone": "First fix", "amount": 120_000, "paid": True, "paid_date": "2026-05-20"},
                {"milestone": "Second fix", "amount": 180_000},
            ],
            "performance": {"quality": 4},
        },
        headers=pm,
    )
    assert r.status_code == 201, r.text
    sub = r.json()["data"]
    assert sub["payment_summary"]["total_paid"] == 120_000
    assert sub["payment_summary"]["total_outstanding"] == 180_000
    assert sub["average_performance"] == 4.0

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=owner)
    finances = r.json()["data"]
    assert finances["breakdown"]["subcontractors"] == 120_000
    assert finances["committed_cost"] == 180_000

    r = await client.patch(
        f"/api/subcontractors/{sub['id']}", json={"performance": {"timeliness": 2}}, headers=pm
    )
    assert r.status_code == 200
    updated = r.json()["data"]
    assert updated["performance"] == {"quality": 4, "timeliness": 2}
    assert updated["average_performance"] == 3.0

    r = await client.patch(
        f"/api/subcontractors/{sub['id']}",
        json={"payment_schedule": [{"milestone": "Lump sum", "amount": 400_000}]},
        headers=pm,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_subcontractor_phase_must_match_project(client, owner, project) -> None:
    other = await client.post(
        "/api/projects", json={"project_code": "PRJ-002", "project_name": "Warehouse"}, headers=owner
    )
    foreign = (await list_phases(client, owner, other.json()["data"]["id"]))[0]
    r = await client.post(
        "/api/subcontractors",
        json={
            "project_id": project["id"],
            "phase_id": foreign["id"],
            "subcontractor_name": "Maji Plumbing",
            "subcontractor_type": "plumbing",
            "contract_value": 90_000,
            "start_date": "2026-05-01",
        },
        headers=owner,
    )
    assert r.status_code == 400
