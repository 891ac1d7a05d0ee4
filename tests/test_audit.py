from __future__ import annotations

import pytest

from helpers import create_expense


@pytest.mark.asyncio
async def test_audit_logs_page_newest_first(client, auth, owner, project) -> None:
    created = [await create_expense(client, owner, project["id"]) for _ in range(3)]

    r = await client.get(
        "/api/audit-logs", params={"entity_type": "EXPENSE", "limit": 2}, headers=auth("accountant")
    )
    assert r.status_code == 200
    body = r.json()["data"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [log["entity_id"] for log in body["logs"]] == [created[2]["id"], created[1]["id"]]
    assert {log["action"] for log in body["logs"]} == {"CREATED"}

    r = await client.get(
        "/api/audit-logs",
        params={"entity_type": "EXPENSE", "limit": 2, "page": 2},
        headers=auth("accountant"),
    )
    assert [log["entity_id"] for log in r.json()["data"]["logs"]] == [created[0]["id"]]


@pytest.mark.asyncio
async def test_audit_logs_need_permission(client, auth) -> None:
    for role in ("clerk", "investor", "supervisor"):
        r = await client.get("/api/audit-logs", headers=auth(role))
        assert r.status_code == 403
