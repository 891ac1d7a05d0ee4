"""
buildtrack.api.routers.professional

Professional service assignments and professional activities.

Responsibilities:
- CRUD for `/api/professional-services`.
- CRUD, bulk creation and approve/reject for `/api/professional-activities`.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.common import DecisionIn, RejectionIn
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import (
    ActivityStatus,
    PaymentStatus,
    ProfessionalServiceStatus,
    ProfessionalType,
)
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.professional import (
    ProfessionalActivityRepo,
    ProfessionalServiceRepo,
)
from buildtrack.services.professional import (
    ProfessionalActivityService,
    ProfessionalServiceService,
)

services_router = APIRouter(prefix="/api/professional-services", tags=["professional-services"])
activities_router = APIRouter(
    prefix="/api/professional-activities", tags=["professional-activities"]
)


# --- Request models -----------------------------------------------------------


class ProfessionalServiceIn(BaseModel):
    project_id: uuid.UUID
    phase_id: uuid.UUID | None = None
    professional_name: str = Field(min_length=2, max_length=256)
    firm_name: str | None = Field(default=None, max_length=256)
    professional_type: ProfessionalType
    contract_type: str = Field(default="fixed_fee", max_length=64)
    contract_value: float = Field(gt=0)
    contract_start_date: date
    contract_end_date: date | None = None
    status: ProfessionalServiceStatus = ProfessionalServiceStatus.active
    notes: str | None = None


class ProfessionalServiceUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    professional_name: str | None = Field(default=None, min_length=2, max_length=256)
    firm_name: str | None = Field(default=None, max_length=256)
    contract_type: str | None = Field(default=None, max_length=64)
    contract_value: float | None = Field(default=None, gt=0)
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    status: ProfessionalServiceStatus | None = None
    notes: str | None = None


class IssueFound(BaseModel):
    description: str = Field(min_length=1)
    severity: Literal["critical", "major", "minor"] = "minor"
    location: str | None = None
    status: Literal["open", "in_progress", "resolved"] = "open"


class MaterialTest(BaseModel):
    material: str = Field(min_length=1)
    test_type: Literal["strength", "quality", "specification", "compliance"]
    result: Literal["pass", "fail", "conditional"]
    notes: str | None = None


class ActivityDocument(BaseModel):
    name: str = Field(min_length=1)
    url: str | None = None
    document_type: str | None = None


class ActivityFields(BaseModel):
    phase_id: uuid.UUID | None = None
    activity_type: str = Field(min_length=1, max_length=64)
    activity_date: date
    visit_purpose: str | None = Field(default=None, max_length=64)
    inspection_type: str | None = Field(default=None, max_length=64)
    compliance_status: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    issues_found: list[IssueFound] = Field(default_factory=list)
    material_tests: list[MaterialTest] = Field(default_factory=list)
    documents: list[ActivityDocument] = Field(default_factory=list)
    fees_charged: float = Field(default=0, ge=0)
    expenses_incurred: float = Field(default=0, ge=0)


class ActivityIn(ActivityFields):
    project_id: uuid.UUID
    professional_service_id: uuid.UUID
    status: Literal["draft", "pending_approval"] = "pending_approval"
    auto_approve: bool = False


class ActivityUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    activity_type: str | None = Field(default=None, min_length=1, max_length=64)
    activity_date: date | None = None
    visit_purpose: str | None = Field(default=None, max_length=64)
    inspection_type: str | None = Field(default=None, max_length=64)
    compliance_status: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    issues_found: list[IssueFound] | None = None
    material_tests: list[MaterialTest] | None = None
    documents: list[ActivityDocument] | None = None
    fees_charged: float | None = Field(default=None, ge=0)
    expenses_incurred: float | None = Field(default=None, ge=0)
    payment_status: PaymentStatus | None = None


class BulkActivitiesIn(BaseModel):
    project_id: uuid.UUID
    professional_service_id: uuid.UUID
    default_phase_id: uuid.UUID | None = None
    auto_approve: bool = False
    activities: list[ActivityFields] = Field(default_factory=list)


_JSON_LISTS = ("issues_found", "material_tests", "documents")


def activity_data(body: BaseModel, *, partial: bool = False) -> dict[str, Any]:
    data = body.model_dump(exclude_unset=partial)
    for key in _JSON_LISTS:
        value = getattr(body, key, None)
        if value is not None and key in data:
            data[key] = [item.model_dump(mode="json") for item in value]
    if isinstance(data.get("status"), str):
        data["status"] = ActivityStatus(data["status"])
    return data


# --- Professional services ----------------------------------------------------


@services_router.get("")
async def list_services(
    project_id: uuid.UUID | None = None,
    professional_type: ProfessionalType | None = None,
    status: ProfessionalServiceStatus | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    result = await ProfessionalServiceRepo(session).search(
        page, project_id=project_id, professional_type=professional_type, status=status
    )
    return ok({"services": [as_dict(s) for s in result.items], "pagination": result.meta()})


@services_router.post("", status_code=HTTP_201_CREATED)
async def create_service(
    body: ProfessionalServiceIn,
    principal: Principal = Depends(require_permission("manage_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    service = await ProfessionalServiceService(session).create(body.model_dump(), principal)
    return ok(
        as_dict(service),
        "Professional service assigned successfully",
        status_code=HTTP_201_CREATED,
    )


@services_router.get("/{service_id}")
async def get_service(
    service_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    service = await ProfessionalServiceService(session).get(service_id)
    recent = await ProfessionalActivityRepo(session).search(
        PageRequest(page=1, limit=10), professional_service_id=service.id
    )
    return ok(as_dict(service, recent_activities=[as_dict(a) for a in recent.items]))


@services_router.patch("/{service_id}")
async def update_service(
    service_id: uuid.UUID,
    body: ProfessionalServiceUpdate,
    principal: Principal = Depends(require_permission("manage_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    svc = ProfessionalServiceService(session)
    service = await svc.get(service_id)
    service = await svc.update(service, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(service), "Professional service updated successfully")


@services_router.delete("/{service_id}")
async def delete_service(
    service_id: uuid.UUID,
    principal: Principal = Depends(require_permission("manage_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    svc = ProfessionalServiceService(session)
    await svc.delete(await svc.get(service_id), principal)
    return ok({"service_id": str(service_id)}, "Professional service removed")


# --- Professional activities --------------------------------------------------


@activities_router.get("")
async def list_activities(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    professional_service_id: uuid.UUID | None = None,
    activity_type: str | None = None,
    status: ActivityStatus | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    result = await ProfessionalActivityRepo(session).search(
        page,
        project_id=project_id,
        phase_id=phase_id,
        professional_service_id=professional_service_id,
        activity_type=activity_type,
        status=status,
    )
    return ok({"activities": [as_dict(a) for a in result.items], "pagination": result.meta()})


@activities_router.post("", status_code=HTTP_201_CREATED)
async def create_activity(
    body: ActivityIn,
    principal: Principal = Depends(require_permission("create_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    activity = await ProfessionalActivityService(session).create(activity_data(body), principal)
    return ok(
        as_dict(activity),
        "Professional activity created successfully",
        status_code=HTTP_201_CREATED,
    )


@activities_router.post("/bulk", status_code=HTTP_201_CREATED)
async def bulk_create_activities(
    body: BulkActivitiesIn,
    principal: Principal = Depends(require_permission("create_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    data = body.model_dump()
    data["activities"] = [activity_data(item) for item in body.activities]
    result = await ProfessionalActivityService(session).bulk_create(data, principal)
    total = result["total_created"]
    noun = "activity" if total == 1 else "activities"
    return ok(
        {**result, "activities": [as_dict(a) for a in result["activities"]]},
        f"Successfully created {total} professional {noun}",
        status_code=HTTP_201_CREATED,
    )


@activities_router.get("/{activity_id}")
async def get_activity(
    activity_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_professional_services")),
    session: AsyncSession = Depends(db_session),
):
    return ok(as_dict(await ProfessionalActivityService(session).get(activity_id)))


@activities_router.patch("/{activity_id}")
async def update_activity(
    activity_id: uuid.UUID,
    body: ActivityUpdate,
    principal: Principal = Depends(require_permission("edit_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    svc = ProfessionalActivityService(session)
    activity = await svc.get(activity_id)
    activity = await svc.update(activity, activity_data(body, partial=True), principal)
    return ok(as_dict(activity), "Professional activity updated successfully")


@activities_router.delete("/{activity_id}")
async def delete_activity(
    activity_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    svc = ProfessionalActivityService(session)
    await svc.delete(await svc.get(activity_id), principal)
    return ok({"activity_id": str(activity_id)}, "Professional activity deleted")


@activities_router.post("/{activity_id}/approve")
async def approve_activity(
    activity_id: uuid.UUID,
    body: DecisionIn | None = None,
    principal: Principal = Depends(require_permission("approve_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    notes = (body.notes if body else None) or ""
    activity = await ProfessionalActivityService(session).approve(activity_id, principal, notes=notes)
    return ok(as_dict(activity), "Professional activity approved")


@activities_router.post("/{activity_id}/reject")
async def reject_activity(
    activity_id: uuid.UUID,
    body: RejectionIn,
    principal: Principal = Depends(require_permission("approve_professional_activity")),
    session: AsyncSession = Depends(db_session),
):
    activity = await ProfessionalActivityService(session).reject(
        activity_id, principal, reason=body.reason
    )
    return ok(as_dict(activity), "Professional activity rejected")
