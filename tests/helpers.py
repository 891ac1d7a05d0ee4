"""
tests.helpers

Request helpers shared by the API tests.
"""

from __future__ import annotations

from typing import Any

import httpx


async def create_project(
    client: httpx.AsyncClient, headers: dict[str, str], **overrides: Any
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "project_code": "PRJ-001",
        "project_name": "Riverside Apartments",
        "location": "Nairobi",
        "budget": {"materials": 600_000, "labour": 250_000, "contingency": 50_000},
    }
    body.update(overrides)
    r = await client.post("/api/projects", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def list_phases(
    client: httpx.AsyncClient, headers: dict[str, str], project_id: str
) -> list[dict[str, Any]]:
    r = await client.get("/api/phases", params={"project_id": project_id}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]


async def create_expense(
    client: httpx.AsyncClient, headers: dict[str, str], project_id: str, **overrides: Any
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "project_id": project_id,
        "amount": 12_500,
        "category": "cement",
        "vendor": "Bamburi",
        "expense_date": "2026-03-02",
    }
    body.update(overrides)
    r = await client.post("/api/expenses", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]
