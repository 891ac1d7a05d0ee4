from __future__ import annotations

import csv
import io

import pytest

from helpers import create_expense, create_project, list_phases


@pytest.mark.asyncio
async def test_create_expense_assigns_code(client, auth, project) -> None:
    expense = await create_expense(client, auth("clerk"), project["id"])
    assert expense["status"] == "PENDING"
    assert expense["expense_code"] == "EXP-20260302-0001"
    assert expense["submitted_by"] == "clerk-user"

    second = await create_expense(client, auth("clerk"), project["id"])
    assert second["expense_code"] == "EXP-20260302-0002"


@pytest.mark.asyncio
async def test_indirect_cost_requires_category(client, owner, project) -> None:
    r = await client.post(
        "/api/expenses",
        json={"project_id": project["id"], "amount": 900, "category": "power", "is_indirect_cost": True},
        headers=owner,
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_phase_must_belong_to_project(client, owner, project) -> None:
    other = await client.post(
        "/api/projects",
        json={"project_code": "PRJ-002", "project_name": "Warehouse"},
        headers=owner,
    )
    foreign_phase = (await list_phases(client, owner, other.json()["data"]["id"]))[0]
    r = await client.post(
        "/api/expenses",
        json={
            "project_id": project["id"],
            "phase_id": foreign_phase["id"],
            "amount": 100,
            "category": "sand",
        },
        headers=owner,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Phase does not belong to this project"


@pytest.mark.asyncio
async def test_only_owner_can_archive(client, auth, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])
    for role in ("pm", "accountant", "clerk"):
        r = await client.post(f"/api/expenses/{expense['id']}/archive", headers=auth(role))
        assert r.status_code == 403
        assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_archive_twice_returns_not_found(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])

    r = await client.post(f"/api/expenses/{expense['id']}/archive", headers=owner)
    assert r.status_code == 200
    assert r.json()["data"]["archived_at"] is not None
    assert r.json()["data"]["archived_by"] == "owner-user"

    r = await client.post(f"/api/expenses/{expense['id']}/archive", headers=owner)
    assert r.status_code == 404
    assert r.json() == {
        "success": False,
        "error": "Expense not found or already archived",
        "code": "NOT_FOUND",
    }

    # Archived expenses leave the default listing.
    r = await client.get("/api/expenses", params={"project_id": project["id"]}, headers=owner)
    assert r.json()["data"]["expenses"] == []
    r = await client.get(
        "/api/expenses", params={"project_id": project["id"], "archived": "true"}, headers=owner
    )
    assert [e["id"] for e in r.json()["data"]["expenses"]] == [expense["id"]]


@pytest.mark.asyncio
async def test_restore_archived_expense(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])
    await client.post(f"/api/expenses/{expense['id']}/archive", headers=owner)

    r = await client.post(f"/api/expenses/{expense['id']}/restore", headers=owner)
    assert r.status_code == 200
    assert r.json()["data"]["archived_at"] is None

    r = await client.post(f"/api/expenses/{expense['id']}/restore", headers=owner)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_approve_records_chain_and_approval(client, auth, project) -> None:
    expense = await create_expense(client, auth("clerk"), project["id"])

    r = await client.post(
        f"/api/expenses/{expense['id']}/approve",
        json={"notes": "Matches delivery note"},
        headers=auth("pm"),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["status"] == "APPROVED"
    assert len(data["approval_chain"]) == 1
    assert data["approval_chain"][0]["approver_id"] == "pm-user"
    assert data["approval_chain"][0]["notes"] == "Matches delivery note"

    r = await client.get(f"/api/expenses/{expense['id']}", headers=auth("pm"))
    detail = r.json()["data"]
    assert [a["action"] for a in detail["approvals"]] == ["APPROVED"]
    assert {log["action"] for log in detail["audit_logs"]} == {"CREATED", "APPROVED"}

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("pm"))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_approval_updates_project_finances(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"], amount=40_000)
    await client.post(f"/api/expenses/{expense['id']}/approve", headers=owner)

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=owner)
    finances = r.json()["data"]
    assert finances["total_used"] == 40_000
    assert finances["breakdown"]["expenses"] == 40_000


@pytest.mark.asyncio
async def test_approval_blocked_by_insufficient_capital(client, owner, project) -> None:
    r = await client.post(
        f"/api/projects/{project['id']}/capital",
        json={"investor_name": "Acme Capital", "amount": 10_000, "funding_type": "equity"},
        headers=owner,
    )
    assert r.status_code == 201
    expense = await create_expense(client, owner, project["id"], amount=12_500)

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=owner)
    assert r.status_code == 400
    capital = r.json()["details"]["capital"]
    assert capital["available"] == 10_000
    assert capital["shortfall"] == 2_500


@pytest.mark.asyncio
async def test_reject_requires_reason(client, auth, project) -> None:
    expense = await create_expense(client, auth("clerk"), project["id"])

    r = await client.post(f"/api/expenses/{expense['id']}/reject", json={}, headers=auth("accountant"))
    assert r.status_code == 400
    assert r.json()["error"] == "Rejection reason is required"

    r = await client.post(
        f"/api/expenses/{expense['id']}/reject",
        json={"reason": "Duplicate invoice"},
        headers=auth("accountant"),
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "REJECTED"

    # Rejected expenses can be edited and resubmitted by their submitter.
    r = await client.patch(
        f"/api/expenses/{expense['id']}", json={"amount": 11_000}, headers=auth("clerk")
    )
    assert r.status_code == 200
    assert r.json()["data"]["amount"] == 11_000


@pytest.mark.asyncio
async def test_clerk_cannot_edit_approved_expense(client, auth, owner, project) -> None:
    expense = await create_expense(client, auth("clerk"), project["id"])
    await client.post(f"/api/expenses/{expense['id']}/approve", headers=owner)

    r = await client.patch(
        f"/api/expenses/{expense['id']}", json={"amount": 1}, headers=auth("clerk")
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_delete_approved_expense_needs_force(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])
    await client.post(f"/api/expenses/{expense['id']}/approve", headers=owner)

    r = await client.delete(f"/api/expenses/{expense['id']}", headers=owner)
    assert r.status_code == 400
    assert r.json()["details"]["recommendation"] == "archive"

    r = await client.delete(
        f"/api/expenses/{expense['id']}", params={"force": "true"}, headers=owner
    )
    assert r.status_code == 200

    r = await client.get(f"/api/expenses/{expense['id']}", headers=owner)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_export_csv(client, auth, owner, project) -> None:
    await create_expense(client, owner, project["id"], category="steel", amount=70_000)
    await create_expense(client, owner, project["id"], category="cement")

    r = await client.get(
        "/api/expenses/export", params={"project_id": project["id"]}, headers=auth("accountant")
    )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert len(rows) == 2
    assert {row["category"] for row in rows} == {"steel", "cement"}
    assert {row["project_code"] for row in rows} == {"PRJ-001"}

    r = await client.get("/api/expenses/export", headers=auth("clerk"))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_list_filters_by_comma_separated_status(client, owner, project) -> None:
    approved = await create_expense(client, owner, project["id"])
    await client.post(f"/api/expenses/{approved['id']}/approve", headers=owner)
    await create_expense(client, owner, project["id"])

    r = await client.get(
        "/api/expenses", params={"project_id": project["id"], "status": "approved,paid"}, headers=owner
    )
    body = r.json()["data"]
    assert [e["id"] for e in body["expenses"]] == [approved["id"]]
    assert body["pagination"]["total"] == 1

    r = await client.get("/api/expenses", params={"status": "lost"}, headers=owner)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_code_sequence_continues_after_delete(client, owner, project) -> None:
    first = await create_expense(client, owner, project["id"])
    await create_expense(client, owner, project["id"])

    r = await client.delete(f"/api/expenses/{first['id']}", headers=owner)
    assert r.status_code == 200

    third = await create_expense(client, owner, project["id"])
    assert third["expense_code"] == "EXP-20260302-0003"


@pytest.mark.asyncio
async def test_update_without_fields_is_rejected(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])
    r = await client.patch(f"/api/expenses/{expense['id']}", json={}, headers=owner)
    assert r.status_code == 400
    assert r.json()["error"] == "No valid fields to update"


@pytest.mark.asyncio
async def test_archived_expense_is_hidden_from_detail(client, owner, project) -> None:
    expense = await create_expense(client, owner, project["id"])
    await client.post(f"/api/expenses/{expense['id']}/archive", headers=owner)

    r = await client.get(f"/api/expenses/{expense['id']}", headers=owner)
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_over_phase_budget_needs_a_manager(client, auth, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    r = await client.patch(
        f"/api/phases/{phase['id']}", json={"budget_allocation": {"total": 10_000}}, headers=owner
    )
    assert r.status_code == 200
    expense = await create_expense(client, owner, project["id"], phase_id=phase["id"])

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("accountant"))
    assert r.status_code == 400
    assert r.json()["details"]["phase_budget"] == {
        "available": 10_000,
        "required": 12_500,
        "budget_total": 10_000,
    }

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("pm"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "APPROVED"
    assert any("exceeds phase" in w for w in data["warnings"])


@pytest.mark.asyncio
async def test_indirect_cost_skips_phase_budget(client, auth, owner, project) -> None:
    phase = (await list_phases(client, owner, project["id"]))[0]
    await client.patch(
        f"/api/phases/{phase['id']}", json={"budget_allocation": {"total": 100}}, headers=owner
    )
    expense = await create_expense(
        client,
        owner,
        project["id"],
        amount=500,
        phase_id=phase["id"],
        is_indirect_cost=True,
        indirect_cost_category="utilities",
    )

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("accountant"))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["warnings"] == ["Project PRJ-001 has no indirect costs budget"]


@pytest.mark.asyncio
async def test_indirect_budget_overrun_needs_a_manager(client, auth, owner) -> None:
    project = await create_project(
        client, owner, budget={"materials": 50_000, "indirect": 1_000}
    )
    assert project["budget"]["indirect"] == 1_000
    assert project["budget"]["total"] == 51_000

    expense = await create_expense(
        client,
        owner,
        project["id"],
        amount=1_500,
        is_indirect_cost=True,
        indirect_cost_category="siteOverhead",
    )
    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("accountant"))
    assert r.status_code == 400
    assert r.json()["details"]["indirect_budget"] == {
        "available": 1_000,
        "required": 1_500,
        "budget_total": 1_000,
    }

    r = await client.post(f"/api/expenses/{expense['id']}/approve", headers=auth("pm"))
    assert r.status_code == 200
    assert r.json()["data"]["warnings"] == [
        "Amount 1,500.00 exceeds the indirect costs budget available 1,000.00"
    ]
