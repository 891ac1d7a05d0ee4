"""
tests.test_smoke

Minimal smoke tests to validate the service can boot and serve core endpoints.

Responsibilities:
- Ensure the FastAPI app starts and DB readiness check works in test mode.
- Ensure dev tokens authenticate and errors use the failure envelope.
"""

from __future__ import annotations

import pytest


@pytest.mark.asyncio
async def test_health_endpoints(client) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_dev_token_round_trip(client) -> None:
    r = await client.post("/api/dev/token", json={"subject": "u-42", "role": "Project_Manager"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["role"] == "pm"

    headers = {"Authorization": f"Bearer {body['data']['access_token']}"}
    r = await client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    me = r.json()["data"]
    assert me["subject"] == "u-42"
    assert "approve_expense" in me["permissions"]
    assert "archive_expense" not in me["permissions"]


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client) -> None:
    r = await client.post("/api/dev/token", json={"subject": "u-1", "role": "janitor"})
    assert r.status_code == 400
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_missing_token_uses_failure_envelope(client) -> None:
    r = await client.get("/api/projects")
    assert r.status_code == 401
    body = r.json()
    assert body == {"success": False, "error": "Unauthorized", "code": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_unknown_route_uses_failure_envelope(client) -> None:
    r = await client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.json()["success"] is False
    assert r.json()["code"] == "HTTP_404"


# --- Module Notes -----------------------------------------------------------
# Domain workflows are covered module by module in the sibling test files.
