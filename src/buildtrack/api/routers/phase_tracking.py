"""
buildtrack.api.routers.phase_tracking

Milestone and quality checkpoint endpoints nested under `/api/phases/{phase_id}`.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.phases import load_phase
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import CheckpointStatus, PhaseMilestone
from buildtrack.services.phase_tracking import (
    MilestoneService,
    QualityCheckpointService,
    status_of,
)

router = APIRouter(prefix="/api/phases/{phase_id}", tags=["phases"])


class MilestoneIn(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    description: str | None = None
    target_date: date | None = None
    actual_date: date | None = None
    completion_criteria: list[str] = Field(default_factory=list)
    sign_off_required: bool = False
    sign_off_by: str | None = Field(default=None, max_length=256)
    sign_off_date: date | None = None
    sign_off_notes: str | None = None


class MilestoneUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    description: str | None = None
    target_date: date | None = None
    actual_date: date | None = None
    completion_criteria: list[str] | None = None
    sign_off_required: bool | None = None
    sign_off_by: str | None = Field(default=None, max_length=256)
    sign_off_date: date | None = None
    sign_off_notes: str | None = None


class CheckpointIn(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    description: str | None = None
    required: bool = True
    status: CheckpointStatus = CheckpointStatus.pending
    inspected_by: str | None = Field(default=None, max_length=256)
    inspected_at: datetime | None = None
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)


class CheckpointUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    description: str | None = None
    required: bool | None = None
    status: CheckpointStatus | None = None
    inspected_by: str | None = Field(default=None, max_length=256)
    inspected_at: datetime | None = None
    notes: str | None = None
    photos: list[str] | None = None


def milestone_payload(milestone: PhaseMilestone) -> dict:
    return as_dict(milestone, status=status_of(milestone))


# --- Milestones -------------------------------------------------------------


@router.get("/milestones")
async def list_milestones(
    phase_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    milestones = [milestone_payload(m) for m in await MilestoneService(session).for_phase(phase)]
    summary = {"total": len(milestones)}
    for item in milestones:
        summary[item["status"]] = summary.get(item["status"], 0) + 1
    return ok({"milestones": milestones, "summary": summary})


@router.post("/milestones", status_code=HTTP_201_CREATED)
async def create_milestone(
    phase_id: uuid.UUID,
    body: MilestoneIn,
    principal: Principal = Depends(require_permission("edit_phase")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    milestone = await MilestoneService(session).create(phase, body.model_dump(), principal)
    return ok(
        milestone_payload(milestone), "Milestone created successfully", status_code=HTTP_201_CREATED
    )


@router.get("/milestones/{milestone_id}")
async def get_milestone(
    phase_id: uuid.UUID,
    milestone_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    return ok(milestone_payload(await MilestoneService(session).get(phase, milestone_id)))


@router.patch("/milestones/{milestone_id}")
async def update_milestone(
    phase_id: uuid.UUID,
    milestone_id: uuid.UUID,
    body: MilestoneUpdate,
    principal: Principal = Depends(require_permission("edit_phase")),
    session: AsyncSession = Depends(db_session),
):
    service = MilestoneService(session)
    milestone = await service.get(await load_phase(phase_id, session), milestone_id)
    milestone = await service.update(milestone, body.model_dump(exclude_unset=True), principal)
    return ok(milestone_payload(milestone), "Milestone updated successfully")


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    phase_id: uuid.UUID,
    milestone_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_phase")),
    session: AsyncSession = Depends(db_session),
):
    service = MilestoneService(session)
    milestone = await service.get(await load_phase(phase_id, session), milestone_id)
    await service.delete(milestone, principal)
    return ok({"milestone_id": str(milestone_id)}, "Milestone deleted successfully")


# --- Quality checkpoints ----------------------------------------------------


@router.get("/quality-checkpoints")
async def list_checkpoints(
    phase_id: uuid.UUID,
    status: CheckpointStatus | None = None,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    checkpoints = await QualityCheckpointService(session).for_phase(phase, status=status)
    open_required = [c for c in checkpoints if c.required and c.status is CheckpointStatus.pending]
    return ok(
        {
            "checkpoints": [as_dict(c) for c in checkpoints],
            "summary": {
                "total": len(checkpoints),
                "failed": sum(c.status is CheckpointStatus.failed for c in checkpoints),
                "pending_required": len(open_required),
            },
        }
    )


@router.post("/quality-checkpoints", status_code=HTTP_201_CREATED)
async def create_checkpoint(
    phase_id: uuid.UUID,
    body: CheckpointIn,
    principal: Principal = Depends(require_permission("manage_quality_checkpoints")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    checkpoint = await QualityCheckpointService(session).create(phase, body.model_dump(), principal)
    return ok(
        as_dict(checkpoint), "Quality checkpoint created successfully", status_code=HTTP_201_CREATED
    )


@router.get("/quality-checkpoints/{checkpoint_id}")
async def get_checkpoint(
    phase_id: uuid.UUID,
    checkpoint_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    return ok(as_dict(await QualityCheckpointService(session).get(phase, checkpoint_id)))


@router.patch("/quality-checkpoints/{checkpoint_id}")
async def update_checkpoint(
    phase_id: uuid.UUID,
    checkpoint_id: uuid.UUID,
    body: CheckpointUpdate,
    principal: Principal = Depends(require_permission("manage_quality_checkpoints")),
    session: AsyncSession = Depends(db_session),
):
    service = QualityCheckpointService(session)
    checkpoint = await service.get(await load_phase(phase_id, session), checkpoint_id)
    checkpoint = await service.update(checkpoint, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(checkpoint), "Quality checkpoint updated successfully")


@router.delete("/quality-checkpoints/{checkpoint_id}")
async def delete_checkpoint(
    phase_id: uuid.UUID,
    checkpoint_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_phase")),
    session: AsyncSession = Depends(db_session),
):
    service = QualityCheckpointService(session)
    checkpoint = await service.get(await load_phase(phase_id, session), checkpoint_id)
    await service.delete(checkpoint, principal)
    return ok({"checkpoint_id": str(checkpoint_id)}, "Quality checkpoint deleted successfully")


# --- Module Notes -----------------------------------------------------------
# Milestone `status` is computed for each response and is not a stored column.
