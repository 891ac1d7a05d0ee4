from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import AcquisitionType, EquipmentScope, EquipmentStatus
from buildtrack.db.repositories.equipment import EquipmentRepo
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.services.equipment import EquipmentService

router = APIRouter(prefix="/api/equipment", tags=["equipment"])


class EquipmentIn(BaseModel):
    project_id: uuid.UUID
    phase_id: uuid.UUID | None = None
    equipment_scope: EquipmentScope = EquipmentScope.phase_specific
    equipment_name: str = Field(min_length=1, max_length=256)
    equipment_type: str = Field(min_length=1, max_length=128)
    acquisition_type: AcquisitionType = AcquisitionType.rental
    supplier_name: str | None = Field(default=None, max_length=256)
    daily_rate: float = Field(default=0, ge=0)
    estimated_hours: float | None = Field(default=None, ge=0)
    start_date: date
    end_date: date | None = None
    status: EquipmentStatus = EquipmentStatus.assigned
    notes: str | None = None


class EquipmentUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    equipment_scope: EquipmentScope | None = None
    equipment_name: str | None = Field(default=None, min_length=1, max_length=256)
    equipment_type: str | None = Field(default=None, min_length=1, max_length=128)
    acquisition_type: AcquisitionType | None = None
    supplier_name: str | None = Field(default=None, max_length=256)
    daily_rate: float | None = Field(default=None, ge=0)
    estimated_hours: float | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    status: EquipmentStatus | None = None
    notes: str | None = None


@router.get("")
async def list_equipment(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    status: EquipmentStatus | None = None,
    equipment_type: str | None = None,
    acquisition_type: AcquisitionType | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_equipment")),
    session: AsyncSession = Depends(db_session),
):
    result = await EquipmentRepo(session).search(
        page,
        project_id=project_id,
        phase_id=phase_id,
        status=status,
        equipment_type=equipment_type,
        acquisition_type=acquisition_type,
    )
    phases = await PhaseRepo(session).by_ids(e.phase_id for e in result.items if e.phase_id)
    items = [
        as_dict(e, phase_name=phases[e.phase_id].phase_name if e.phase_id in phases else None)
        for e in result.items
    ]
    return ok({"equipment": items, "pagination": result.meta()})


@router.post("", status_code=HTTP_201_CREATED)
async def create_equipment(
    body: EquipmentIn,
    principal: Principal = Depends(require_permission("create_equipment")),
    session: AsyncSession = Depends(db_session),
):
    item = await EquipmentService(session).create(body.model_dump(), principal)
    return ok(as_dict(item), "Equipment created successfully", status_code=HTTP_201_CREATED)


@router.get("/{equipment_id}")
async def get_equipment(
    equipment_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_equipment")),
    session: AsyncSession = Depends(db_session),
):
    return ok(as_dict(await EquipmentService(session).get(equipment_id)))


@router.patch("/{equipment_id}")
async def update_equipment(
    equipment_id: uuid.UUID,
    body: EquipmentUpdate,
    principal: Principal = Depends(require_permission("edit_equipment")),
    session: AsyncSession = Depends(db_session),
):
    service = EquipmentService(session)
    item = await service.get(equipment_id)
    item = await service.update(item, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(item), "Equipment updated successfully")


@router.delete("/{equipment_id}")
async def delete_equipment(
    equipment_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_equipment")),
    session: AsyncSession = Depends(db_session),
):
    service = EquipmentService(session)
    await service.delete(await service.get(equipment_id), principal)
    return ok({"equipment_id": str(equipment_id)}, "Equipment deleted successfully")
