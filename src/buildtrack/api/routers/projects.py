"""
buildtrack.api.routers.projects

Project and capital endpoints.

Responsibilities:
- List/create/read/update/archive projects.
- Record capital contributions and expose the finance snapshot.
"""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session, settings_dep
from buildtrack.api.envelope import as_dict, ok
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import FundingType, Project, ProjectStatus
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import CapitalRepo, ProjectRepo
from buildtrack.errors import NotFound
from buildtrack.services.projects import ProjectService
from buildtrack.settings import Settings

router = APIRouter(prefix="/api/projects", tags=["projects"])


class BudgetIn(BaseModel):
    total: float | None = Field(default=None, ge=0)
    materials: float | None = Field(default=None, ge=0)
    labour: float | None = Field(default=None, ge=0)
    equipment: float | None = Field(default=None, ge=0)
    subcontractors: float | None = Field(default=None, ge=0)
    contingency: float | None = Field(default=None, ge=0)


class ProjectBudgetIn(BudgetIn):
    indirect: float | None = Field(default=None, ge=0)


class ProjectCreate(BaseModel):
    project_code: str = Field(min_length=1, max_length=64)
    project_name: str = Field(min_length=1, max_length=256)
    description: str | None = None
    location: str | None = Field(default=None, max_length=256)
    client: str | None = Field(default=None, max_length=256)
    status: ProjectStatus | None = None
    start_date: date | None = None
    planned_end_date: date | None = None
    budget: ProjectBudgetIn | None = None
    auto_create_phases: bool = True


class ProjectUpdate(BaseModel):
    project_code: str | None = Field(default=None, min_length=1, max_length=64)
    project_name: str | None = Field(default=None, min_length=1, max_length=256)
    description: str | None = None
    location: str | None = Field(default=None, max_length=256)
    client: str | None = Field(default=None, max_length=256)
    status: ProjectStatus | None = None
    start_date: date | None = None
    planned_end_date: date | None = None
    actual_end_date: date | None = None
    completion_percentage: float | None = Field(default=None, ge=0, le=100)
    budget: ProjectBudgetIn | None = None


class CapitalIn(BaseModel):
    investor_name: str = Field(min_length=1, max_length=256)
    amount: float = Field(gt=0)
    funding_type: FundingType
    contributed_on: date = Field(default_factory=date.today)
    notes: str | None = None


async def load_project(project_id: uuid.UUID, session: AsyncSession) -> Project:
    project = await ProjectRepo(session).get(project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


@router.get("")
async def list_projects(
    status: ProjectStatus | None = None,
    search: str | None = None,
    archived: bool = False,
    _: Principal = Depends(require_permission("view_projects")),
    session: AsyncSession = Depends(db_session),
):
    projects = await ProjectRepo(session).list(status=status, archived=archived, search=search)
    return ok([as_dict(p) for p in projects])


@router.post("", status_code=HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    principal: Principal = Depends(require_permission("create_project")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    data = body.model_dump()
    data["budget"] = body.budget.model_dump() if body.budget else None
    project, notices = await ProjectService(session=session, settings=settings).create(data, principal)
    return ok(
        as_dict(project, **notices),
        "Project created successfully",
        status_code=HTTP_201_CREATED,
    )


@router.get("/{project_id}")
async def get_project(
    project_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_projects")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    project = await load_project(project_id, session)
    statistics = await ProjectService(session=session, settings=settings).statistics(project)
    phases = await PhaseRepo(session).list_for_project(project.id)
    return ok(
        as_dict(
            project,
            statistics=statistics,
            phases=[as_dict(p) for p in phases],
        )
    )


@router.patch("/{project_id}")
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    principal: Principal = Depends(require_permission("edit_project")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    project = await load_project(project_id, session)
    data = body.model_dump(exclude_unset=True)
    if body.budget is not None:
        data["budget"] = body.budget.model_dump(exclude_unset=True)
    project = await ProjectService(session=session, settings=settings).update(project, data, principal)
    return ok(as_dict(project), "Project updated successfully")


@router.delete("/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    force: bool = Query(default=False),
    principal: Principal = Depends(require_permission("delete_project")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    project = await load_project(project_id, session)
    outcome = await ProjectService(session=session, settings=settings).remove(
        project, principal, force=force
    )
    message = (
        "Project permanently deleted" if outcome == "deleted" else "Project archived successfully"
    )
    return ok({"project_id": str(project_id), "outcome": outcome}, message)


@router.post("/{project_id}/capital", status_code=HTTP_201_CREATED)
async def add_capital(
    project_id: uuid.UUID,
    body: CapitalIn,
    principal: Principal = Depends(require_permission("update_project_finances")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    project = await load_project(project_id, session)
    contribution, finance = await ProjectService(session=session, settings=settings).add_capital(
        project, body.model_dump(), principal
    )
    return ok(
        {"contribution": as_dict(contribution), "finances": as_dict(finance)},
        "Capital recorded",
        status_code=HTTP_201_CREATED,
    )


@router.get("/{project_id}/finances")
async def get_finances(
    project_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_financing")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    project = await load_project(project_id, session)
    finance = await ProjectService(session=session, settings=settings).finances(project)
    contributions = await CapitalRepo(session).list_for_project(project.id)
    return ok(
        as_dict(
            finance,
            contributions=[as_dict(c) for c in contributions],
            budget_total=(project.budget or {}).get("total", 0),
        )
    )
