from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import ContractType, SubcontractorStatus
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.subcontractors import SubcontractorRepo
from buildtrack.services.subcontractors import SubcontractorService, subcontractor_summary

router = APIRouter(prefix="/api/subcontractors", tags=["subcontractors"])


class PaymentMilestone(BaseModel):
    milestone: str = Field(min_length=1, max_length=256)
    amount: float = Field(gt=0)
    due_date: date | None = None
    paid: bool = False
    paid_date: date | None = None
    payment_reference: str | None = Field(default=None, max_length=128)


class Performance(BaseModel):
    quality: int | None = Field(default=None, ge=1, le=5)
    timeliness: int | None = Field(default=None, ge=1, le=5)
    communication: int | None = Field(default=None, ge=1, le=5)


class SubcontractorIn(BaseModel):
    project_id: uuid.UUID
    phase_id: uuid.UUID
    subcontractor_name: str = Field(min_length=2, max_length=256)
    subcontractor_type: str = Field(min_length=1, max_length=128)
    contact_person: str | None = Field(default=None, max_length=256)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=256)
    contract_value: float = Field(gt=0)
    contract_type: ContractType = ContractType.fixed_price
    start_date: date
    end_date: date | None = None
    status: SubcontractorStatus = SubcontractorStatus.pending
    payment_schedule: list[PaymentMilestone] = Field(default_factory=list)
    performance: Performance | None = None
    notes: str | None = None


class SubcontractorUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    subcontractor_name: str | None = Field(default=None, min_length=2, max_length=256)
    subcontractor_type: str | None = Field(default=None, min_length=1, max_length=128)
    contact_person: str | None = Field(default=None, max_length=256)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=256)
    contract_value: float | None = Field(default=None, gt=0)
    contract_type: ContractType | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: SubcontractorStatus | None = None
    payment_schedule: list[PaymentMilestone] | None = None
    performance: Performance | None = None
    notes: str | None = None


def _service_data(body: BaseModel, *, partial: bool) -> dict[str, Any]:
    data = body.model_dump(exclude_unset=partial)
    # JSON columns receive plain JSON values.
    if getattr(body, "payment_schedule", None) is not None:
        data["payment_schedule"] = [p.model_dump(mode="json") for p in body.payment_schedule]
    if getattr(body, "performance", None) is not None:
        data["performance"] = body.performance.model_dump(exclude_none=True)
    return data


def _payload(sub) -> dict[str, Any]:
    return as_dict(sub, **subcontractor_summary(sub))


@router.get("")
async def list_subcontractors(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    status: SubcontractorStatus | None = None,
    subcontractor_type: str | None = None,
    search: str | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_subcontractors")),
    session: AsyncSession = Depends(db_session),
):
    result = await SubcontractorRepo(session).search(
        page,
        project_id=project_id,
        phase_id=phase_id,
        status=status,
        subcontractor_type=subcontractor_type,
        search=search,
    )
    return ok({"subcontractors": [_payload(s) for s in result.items], "pagination": result.meta()})


@router.post("", status_code=HTTP_201_CREATED)
async def create_subcontractor(
    body: SubcontractorIn,
    principal: Principal = Depends(require_permission("manage_subcontractors")),
    session: AsyncSession = Depends(db_session),
):
    sub = await SubcontractorService(session).create(_service_data(body, partial=False), principal)
    return ok(_payload(sub), "Subcontractor created successfully", status_code=HTTP_201_CREATED)


@router.get("/{subcontractor_id}")
async def get_subcontractor(
    subcontractor_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_subcontractors")),
    session: AsyncSession = Depends(db_session),
):
    return ok(_payload(await SubcontractorService(session).get(subcontractor_id)))


@router.patch("/{subcontractor_id}")
async def update_subcontractor(
    subcontractor_id: uuid.UUID,
    body: SubcontractorUpdate,
    principal: Principal = Depends(require_permission("manage_subcontractors")),
    session: AsyncSession = Depends(db_session),
):
    service = SubcontractorService(session)
    sub = await service.get(subcontractor_id)
    sub = await service.update(sub, _service_data(body, partial=True), principal)
    return ok(_payload(sub), "Subcontractor updated successfully")


@router.delete("/{subcontractor_id}")
async def delete_subcontractor(
    subcontractor_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_subcontractor")),
    session: AsyncSession = Depends(db_session),
):
    service = SubcontractorService(session)
    await service.delete(await service.get(subcontractor_id), principal)
    return ok({"subcontractor_id": str(subcontractor_id)}, "Subcontractor deleted successfully")
