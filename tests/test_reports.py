from __future__ import annotations

import csv
import io

import pytest

from helpers import create_expense, list_phases


@pytest.mark.asyncio
async def test_budget_variance(client, auth, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    direct = await create_expense(client, owner, project["id"], amount=700_000, phase_id=phase["id"])
    indirect = await create_expense(
        client,
        owner,
        project["id"],
        amount=10_000,
        is_indirect_cost=True,
        indirect_cost_category="utilities",
    )
    await create_expense(client, owner, project["id"], amount=5_000)
    for expense in (direct, indirect):
        r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=owner)
        assert r.status_code == 200

    r = await client.get(
        "/api/reports/budget-variance", params={"project_id": project["id"]}, headers=auth("investor")
    )
    assert r.status_code == 200
    report = r.json()["data"]
    lines = {line["category"]: line for line in report["categories"]}

    assert lines["materials"]["actual"] == 700_000
    assert lines["materials"]["variance"] == -100_000
    assert lines["materials"]["status"] == "over_budget"
    assert lines["indirect"]["actual"] == 10_000
    assert lines["contingency"]["actual"] == 0
    assert lines["labour"]["status"] == "within_budget"

    assert report["totals"]["actual"] == 710_000
    assert report["remaining_budget"] == 190_000
    assert report["utilization_percentage"] == pytest.approx(78.89)

    substructure = report["phases"][0]
    assert substructure["phase_id"] == phase["id"]
    assert substructure["summary"]["actual_total"] == 700_000


@pytest.mark.asyncio
async def test_budget_variance_export(client, owner, project) -> None:
    r = await client.get(
        "/api/reports/budget-variance/export", params={"project_id": project["id"]}, headers=owner
    )
    assert r.status_code == 200
    assert "budget-variance-PRJ-001.csv" in r.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(r.text)))
    categories = [row["category"] for row in rows]
    assert categories[:7] == [
        "materials",
        "labour",
        "equipment",
        "subcontractors",
        "indirect",
        "contingency",
        "TOTAL",
    ]
    assert "Phase: Superstructure" in categories


@pytest.mark.asyncio
async def test_reports_need_permission(client, auth, project) -> None:
    r = await client.get(
        "/api/reports/budget-variance", params={"project_id": project["id"]}, headers=auth("clerk")
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_pending_approvals_queue(client, auth, owner, project) -> None:
    await create_expense(client, auth("clerk"), project["id"])
    r = await client.post(
        "/api/labour/entries",
        json={
            "project_id": project["id"],
            "worker_name": "Casual Hand",
            "hourly_rate": 250,
            "total_hours": 8,
            "status": "submitted",
        },
        headers=auth("clerk"),
    )
    assert r.status_code == 201

    r = await client.get("/api/approvals/pending", headers=auth("accountant"))
    counts = r.json()["data"]["counts"]
    assert counts == {"expenses": 1, "labour_entries": 1, "professional_activities": 0, "total": 2}

    r = await client.get("/api/approvals/pending", headers=auth("clerk"))
    assert r.status_code == 403
