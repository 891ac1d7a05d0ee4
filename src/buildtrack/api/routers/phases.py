from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.projects import BudgetIn, load_project
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import Phase, PhaseStatus, PhaseType
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.errors import NotFound
from buildtrack.services.calculations import phase_financial_summary
from buildtrack.services.finance import recalculate_phase_spending
from buildtrack.services.phases import PhaseService

router = APIRouter(prefix="/api/phases", tags=["phases"])


class PhaseCreate(BaseModel):
    project_id: uuid.UUID
    phase_name: str = Field(min_length=1, max_length=256)
    phase_code: str | None = Field(default=None, max_length=64)
    phase_type: PhaseType | None = None
    sequence: int | None = Field(default=None, ge=1)
    description: str | None = None
    start_date: date | None = None
    planned_end_date: date | None = None
    budget_allocation: BudgetIn | None = None
    depends_on: list[uuid.UUID] = Field(default_factory=list)


class PhaseUpdate(BaseModel):
    phase_name: str | None = Field(default=None, min_length=1, max_length=256)
    phase_code: str | None = Field(default=None, min_length=1, max_length=64)
    phase_type: PhaseType | None = None
    sequence: int | None = Field(default=None, ge=1)
    description: str | None = None
    status: PhaseStatus | None = None
    start_date: date | None = None
    planned_end_date: date | None = None
    completion_percentage: float | None = Field(default=None, ge=0, le=100)
    budget_allocation: BudgetIn | None = None
    depends_on: list[uuid.UUID] | None = None


async def load_phase(phase_id: uuid.UUID, session: AsyncSession) -> Phase:
    phase = await PhaseRepo(session).get(phase_id)
    if phase is None:
        raise NotFound("Phase not found")
    return phase


def phase_payload(phase: Phase) -> dict:
    return as_dict(
        phase,
        financial_summary=phase_financial_summary(
            phase.budget_allocation, phase.actual_spending, phase.financial_states
        ),
    )


@router.get("")
async def list_phases(
    project_id: uuid.UUID,
    status: PhaseStatus | None = None,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    await load_project(project_id, session)
    phases = await PhaseRepo(session).list_for_project(project_id, status=status)
    return ok([phase_payload(p) for p in phases])


@router.post("", status_code=HTTP_201_CREATED)
async def create_phase(
    body: PhaseCreate,
    principal: Principal = Depends(require_permission("create_phase")),
    session: AsyncSession = Depends(db_session),
):
    project = await load_project(body.project_id, session)
    data = body.model_dump()
    data["budget_allocation"] = (
        body.budget_allocation.model_dump() if body.budget_allocation else None
    )
    phase = await PhaseService(session).create(project=project, data=data, principal=principal)
    return ok(phase_payload(phase), "Phase created successfully", status_code=HTTP_201_CREATED)


@router.get("/{phase_id}")
async def get_phase(
    phase_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    gate = await PhaseService(session).can_start(phase)
    return ok({**phase_payload(phase), "can_start": gate})


@router.patch("/{phase_id}")
async def update_phase(
    phase_id: uuid.UUID,
    body: PhaseUpdate,
    principal: Principal = Depends(require_permission("edit_phase")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    data = body.model_dump(exclude_unset=True)
    if body.budget_allocation is not None:
        data["budget_allocation"] = body.budget_allocation.model_dump(exclude_unset=True)
    phase = await PhaseService(session).update(phase, data, principal)
    return ok(phase_payload(phase), "Phase updated successfully")


@router.delete("/{phase_id}")
async def delete_phase(
    phase_id: uuid.UUID,
    principal: Principal = Depends(require_permission("delete_phase")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    await PhaseService(session).delete(phase, principal)
    return ok({"phase_id": str(phase_id)}, "Phase deleted successfully")


@router.get("/{phase_id}/financial-summary")
async def get_financial_summary(
    phase_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    await recalculate_phase_spending(session, phase)
    await session.commit()
    return ok(
        {
            "phase_id": str(phase.id),
            "phase_name": phase.phase_name,
            "budget_allocation": phase.budget_allocation,
            "actual_spending": phase.actual_spending,
            "financial_states": phase.financial_states,
            "summary": phase_financial_summary(
                phase.budget_allocation, phase.actual_spending, phase.financial_states
            ),
        }
    )


@router.get("/{phase_id}/can-start")
async def get_can_start(
    phase_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_phases")),
    session: AsyncSession = Depends(db_session),
):
    phase = await load_phase(phase_id, session)
    return ok(await PhaseService(session).can_start(phase))
