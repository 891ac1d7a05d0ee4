"""
buildtrack.api.routers.labour

Worker register and labour entry endpoints under `/api/labour`.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import csv_list, db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.common import DecisionIn, RejectionIn
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import (
    EmploymentType,
    LabourEntryStatus,
    WorkerStatus,
    WorkerType,
)
from buildtrack.db.repositories.labour_entries import LabourEntryRepo
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.workers import WorkerRepo
from buildtrack.errors import ValidationFailed
from buildtrack.services.labour import LabourEntryService, WorkerService

router = APIRouter(prefix="/api/labour", tags=["labour"])


class WorkerIn(BaseModel):
    employee_id: str = Field(min_length=1, max_length=64)
    worker_name: str = Field(min_length=2, max_length=256)
    worker_type: WorkerType = WorkerType.internal
    employment_type: EmploymentType = EmploymentType.casual
    profession: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=256)
    default_hourly_rate: float = Field(default=0, ge=0)
    default_daily_rate: float | None = Field(default=None, ge=0)
    overtime_multiplier: float = Field(default=1.5, ge=1)
    skill_types: list[str] = Field(default_factory=list)
    status: WorkerStatus = WorkerStatus.active
    hire_date: date | None = None
    termination_date: date | None = None
    notes: str | None = None


class WorkerUpdate(BaseModel):
    employee_id: str | None = Field(default=None, min_length=1, max_length=64)
    worker_name: str | None = Field(default=None, min_length=2, max_length=256)
    worker_type: WorkerType | None = None
    employment_type: EmploymentType | None = None
    profession: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=256)
    default_hourly_rate: float | None = Field(default=None, ge=0)
    default_daily_rate: float | None = Field(default=None, ge=0)
    overtime_multiplier: float | None = Field(default=None, ge=1)
    skill_types: list[str] | None = None
    status: WorkerStatus | None = None
    hire_date: date | None = None
    termination_date: date | None = None
    notes: str | None = None


class LabourEntryIn(BaseModel):
    project_id: uuid.UUID
    phase_id: uuid.UUID | None = None
    worker_id: uuid.UUID | None = None
    worker_name: str | None = Field(default=None, max_length=256)
    worker_type: WorkerType | None = None
    skill_type: str | None = Field(default=None, max_length=128)
    entry_date: date = Field(default_factory=date.today)
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    break_duration: int = Field(default=0, ge=0)
    total_hours: float | None = Field(default=None, ge=0, le=24)
    overtime_hours: float | None = Field(default=None, ge=0)
    hourly_rate: float | None = Field(default=None, ge=0)
    daily_rate: float | None = Field(default=None, ge=0)
    overtime_multiplier: float | None = Field(default=None, ge=1)
    task_description: str | None = None
    quality_rating: int | None = Field(default=None, ge=1, le=5)
    productivity_rating: int | None = Field(default=None, ge=1, le=5)
    status: LabourEntryStatus | None = None
    notes: str | None = None


class LabourEntryUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    skill_type: str | None = Field(default=None, max_length=128)
    entry_date: date | None = None
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    break_duration: int | None = Field(default=None, ge=0)
    total_hours: float | None = Field(default=None, ge=0, le=24)
    overtime_hours: float | None = Field(default=None, ge=0)
    hourly_rate: float | None = Field(default=None, ge=0)
    daily_rate: float | None = Field(default=None, ge=0)
    overtime_multiplier: float | None = Field(default=None, ge=1)
    task_description: str | None = None
    quality_rating: int | None = Field(default=None, ge=1, le=5)
    productivity_rating: int | None = Field(default=None, ge=1, le=5)
    status: LabourEntryStatus | None = None
    notes: str | None = None


# --- Workers ----------------------------------------------------------------


@router.get("/workers")
async def list_workers(
    status: WorkerStatus | None = None,
    worker_type: WorkerType | None = None,
    skill_type: str | None = None,
    search: str | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_labour")),
    session: AsyncSession = Depends(db_session),
):
    result = await WorkerRepo(session).search(
        page, status=status, worker_type=worker_type, skill_type=skill_type, search=search
    )
    return ok({"workers": [as_dict(w) for w in result.items], "pagination": result.meta()})


@router.post("/workers", status_code=HTTP_201_CREATED)
async def create_worker(
    body: WorkerIn,
    principal: Principal = Depends(require_permission("manage_workers")),
    session: AsyncSession = Depends(db_session),
):
    worker, warnings = await WorkerService(session).create(body.model_dump(), principal)
    return ok(
        as_dict(worker, warnings=warnings),
        "Worker created successfully",
        status_code=HTTP_201_CREATED,
    )


@router.get("/workers/{worker_id}")
async def get_worker(
    worker_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_labour")),
    session: AsyncSession = Depends(db_session),
):
    worker = await WorkerService(session).get(worker_id)
    recent = await LabourEntryRepo(session).search(PageRequest(page=1, limit=10), worker_id=worker.id)
    return ok(as_dict(worker, recent_entries=[as_dict(e) for e in recent.items]))


@router.patch("/workers/{worker_id}")
async def update_worker(
    worker_id: uuid.UUID,
    body: WorkerUpdate,
    principal: Principal = Depends(require_permission("manage_workers")),
    session: AsyncSession = Depends(db_session),
):
    service = WorkerService(session)
    worker = await service.get(worker_id)
    worker, warnings = await service.update(worker, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(worker, warnings=warnings), "Worker updated successfully")


@router.delete("/workers/{worker_id}")
async def delete_worker(
    worker_id: uuid.UUID,
    principal: Principal = Depends(require_permission("manage_workers")),
    session: AsyncSession = Depends(db_session),
):
    service = WorkerService(session)
    await service.delete(await service.get(worker_id), principal)
    return ok({"worker_id": str(worker_id)}, "Worker deleted successfully")


# --- Entries ----------------------------------------------------------------


@router.get("/entries")
async def list_entries(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    worker_id: uuid.UUID | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_labour")),
    session: AsyncSession = Depends(db_session),
):
    try:
        statuses = [LabourEntryStatus(s) for s in csv_list(status)]
    except ValueError as e:
        raise ValidationFailed(f"Invalid status filter: {status}") from e
    result = await LabourEntryRepo(session).search(
        page,
        project_id=project_id,
        phase_id=phase_id,
        worker_id=worker_id,
        statuses=statuses,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return ok(
        {
            "entries": [as_dict(e) for e in result.items],
            "pagination": result.meta(),
            "summary": {
                "total_hours": round(sum(e.total_hours for e in result.items), 2),
                "total_cost": round(sum(e.total_cost for e in result.items), 2),
            },
        }
    )


@router.post("/entries", status_code=HTTP_201_CREATED)
async def create_entry(
    body: LabourEntryIn,
    principal: Principal = Depends(require_permission("create_labour_entry")),
    session: AsyncSession = Depends(db_session),
):
    entry, warnings = await LabourEntryService(session).create(body.model_dump(), principal)
    return ok(
        as_dict(entry, warnings=warnings),
        "Labour entry created successfully",
        status_code=HTTP_201_CREATED,
    )


@router.get("/entries/{entry_id}")
async def get_entry(
    entry_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_labour")),
    session: AsyncSession = Depends(db_session),
):
    return ok(as_dict(await LabourEntryService(session).get(entry_id)))


@router.patch("/entries/{entry_id}")
async def update_entry(
    entry_id: uuid.UUID,
    body: LabourEntryUpdate,
    principal: Principal = Depends(require_permission("edit_labour_entry")),
    session: AsyncSession = Depends(db_session),
):
    service = LabourEntryService(session)
    entry = await service.get(entry_id)
    entry, warnings = await service.update(entry, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(entry, warnings=warnings), "Labour entry updated successfully")


@router.delete("/entries/{entry_id}")
async def delete_entry(
    entry_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_labour_entry")),
    session: AsyncSession = Depends(db_session),
):
    service = LabourEntryService(session)
    await service.delete(await service.get(entry_id), principal)
    return ok({"entry_id": str(entry_id)}, "Labour entry deleted successfully")


@router.post("/entries/{entry_id}/approve")
async def approve_entry(
    entry_id: uuid.UUID,
    body: DecisionIn | None = None,
    principal: Principal = Depends(require_permission("approve_labour_entry")),
    session: AsyncSession = Depends(db_session),
):
    notes = body.notes if body else ""
    entry = await LabourEntryService(session).approve(entry_id, principal, notes=notes or "")
    return ok(as_dict(entry), "Labour entry approved")


@router.post("/entries/{entry_id}/reject")
async def reject_entry(
    entry_id: uuid.UUID,
    body: RejectionIn,
    principal: Principal = Depends(require_permission("approve_labour_entry")),
    session: AsyncSession = Depends(db_session),
):
    entry = await LabourEntryService(session).reject(entry_id, principal, reason=body.reason)
    return ok(as_dict(entry), "Labour entry rejected")
