from __future__ import annotations

import pytest

from buildtrack.db.models import ProfessionalType
from buildtrack.services.professional import activity_code, activity_errors


def test_activity_code_format() -> None:
    assert activity_code(ProfessionalType.architect, 7) == "ACT-ARCH-000007"
    assert activity_code(ProfessionalType.engineer, 123456) == "ACT-ENG-123456"


def test_activity_types_depend_on_professional_type() -> None:
    assert activity_errors(
        {"activity_type": "design_revision", "activity_date": "2026-03-02"}, ProfessionalType.architect
    ) == []
    errors = activity_errors(
        {"activity_type": "design_revision", "activity_date": "2026-03-02"}, ProfessionalType.engineer
    )
    assert len(errors) == 1
    assert errors[0].startswith("Activity type 'design_revision' is not valid for engineer")


async def _service(client, headers, project_id, **overrides) -> dict:
    body = {
        "project_id": project_id,
        "professional_name": "Eng. Wanjiru Kamau",
        "firm_name": "Kamau Structural",
        "professional_type": "engineer",
        "contract_value": 800_000,
        "contract_start_date": "2026-01-15",
    }
    body.update(overrides)
    r = await client.post("/api/professional-services", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def _activity(**overrides) -> dict:
    body = {
        "activity_type": "inspection",
        "activity_date": "2026-03-02",
        "inspection_type": "structural",
        "fees_charged": 15_000,
        "expenses_incurred": 2_000,
        "issues_found": [{"description": "Honeycombing on column C4", "severity": "major"}],
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_activity_pending_and_counted(client, auth, project) -> None:
    service = await _service(client, auth("pm"), project["id"])

    r = await client.post(
        "/api/professional-activities",
        json={"project_id": project["id"], "professional_service_id": service["id"], **_activity()},
        headers=auth("clerk"),
    )
    assert r.status_code == 201, r.text
    activity = r.json()["data"]
    assert activity["activity_code"] == "ACT-ENG-000001"
    assert activity["status"] == "pending_approval"
    assert activity["issues_found"][0]["severity"] == "major"

    r = await client.get(f"/api/professional-services/{service['id']}", headers=auth("pm"))
    detail = r.json()["data"]
    assert detail["total_activities"] == 1
    assert detail["total_inspections"] == 1
    assert detail["total_fees"] == 0
    assert [a["id"] for a in detail["recent_activities"]] == [activity["id"]]


@pytest.mark.asyncio
async def test_activity_type_must_match_professional(client, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    r = await client.post(
        "/api/professional-activities",
        json={
            "project_id": project["id"],
            "professional_service_id": service["id"],
            **_activity(activity_type="design_revision"),
        },
        headers=owner,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_auto_approve_only_for_owner(client, auth, project) -> None:
    service = await _service(client, auth("pm"), project["id"])
    body = {
        "project_id": project["id"],
        "professional_service_id": service["id"],
        "auto_approve": True,
        **_activity(),
    }

    r = await client.post("/api/professional-activities", json=body, headers=auth("pm"))
    assert r.json()["data"]["status"] == "pending_approval"

    r = await client.post("/api/professional-activities", json=body, headers=auth("owner"))
    assert r.json()["data"]["status"] == "approved"
    assert r.json()["data"]["approved_by"] == "owner-user"

    r = await client.get(f"/api/professional-services/{service['id']}", headers=auth("pm"))
    assert r.json()["data"]["total_fees"] == 17_000


@pytest.mark.asyncio
async def test_service_must_belong_to_project(client, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    other = await client.post(
        "/api/projects", json={"project_code": "PRJ-002", "project_name": "Warehouse"}, headers=owner
    )
    r = await client.post(
        "/api/professional-activities",
        json={
            "project_id": other.json()["data"]["id"],
            "professional_service_id": service["id"],
            **_activity(),
        },
        headers=owner,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_bulk_create(client, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    r = await client.post(
        "/api/professional-activities/bulk",
        json={
            "project_id": project["id"],
            "professional_service_id": service["id"],
            "auto_approve": True,
            "activities": [
                _activity(),
                _activity(activity_type="site_visit", visit_purpose="progress_check", fees_charged=5_000),
                _activity(activity_type="quality_check", fees_charged=0, expenses_incurred=0),
            ],
        },
        headers=owner,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Successfully created 3 professional activities"
    data = body["data"]
    assert data["total_created"] == 3
    assert data["status"] == "approved"
    assert data["requires_approval"] is False
    assert [a["activity_code"] for a in data["activities"]] == [
        "ACT-ENG-000001",
        "ACT-ENG-000002",
        "ACT-ENG-000003",
    ]

    r = await client.get(f"/api/professional-services/{service['id']}", headers=owner)
    detail = r.json()["data"]
    assert detail["total_activities"] == 3
    assert detail["total_inspections"] == 1
    assert detail["total_site_visits"] == 1
    assert detail["total_fees"] == 17_000 + 7_000

    r = await client.get("/api/audit-logs", params={"entity_type": "BULK_PROFESSIONAL_ACTIVITIES"}, headers=owner)
    logs = r.json()["data"]["logs"]
    assert len(logs) == 1
    assert logs[0]["changes"]["created"]["count"] == 3


@pytest.mark.asyncio
async def test_bulk_create_is_all_or_nothing(client, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    r = await client.post(
        "/api/professional-activities/bulk",
        json={
            "project_id": project["id"],
            "professional_service_id": service["id"],
            "activities": [_activity(), _activity(activity_type="design_revision")],
        },
        headers=owner,
    )
    assert r.status_code == 400
    errors = r.json()["details"]["errors"]
    assert len(errors) == 1
    assert errors[0].startswith("Activity 2: ")

    r = await client.get(
        "/api/professional-activities", params={"project_id": project["id"]}, headers=owner
    )
    assert r.json()["data"]["activities"] == []


@pytest.mark.asyncio
async def test_bulk_create_requires_activities(client, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    r = await client.post(
        "/api/professional-activities/bulk",
        json={"project_id": project["id"], "professional_service_id": service["id"], "activities": []},
        headers=owner,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "At least one activity is required"


@pytest.mark.asyncio
async def test_approve_then_delete_adjusts_fees_and_counters(client, auth, owner, project) -> None:
    service = await _service(client, owner, project["id"])
    r = await client.post(
        "/api/professional-activities",
        json={"project_id": project["id"], "professional_service_id": service["id"], **_activity()},
        headers=auth("clerk"),
    )
    activity = r.json()["data"]

    r = await client.post(f"/api/professional-activities/{activity['id']}/approve", headers=auth("pm"))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "approved"

    r = await client.get(f"/api/projects/{project['id']}/finances", headers=owner)
    assert r.json()["data"]["breakdown"]["professional_services"] == 17_000

    r = await client.patch(
        f"/api/professional-activities/{activity['id']}", json={"notes": "revised"}, headers=auth("pm")
    )
    assert r.status_code == 403

    r = await client.delete(f"/api/professional-activities/{activity['id']}", headers=owner)
    assert r.status_code == 200

    r = await client.get(f"/api/professional-services/{service['id']}", headers=owner)
    detail = r.json()["data"]
    assert detail["total_activities"] == 0
    assert detail["total_inspections"] == 0
    assert detail["total_fees"] == 0
