from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.api.deps import db_session
from buildtrack.api.envelope import ok
from buildtrack.api.routers.projects import load_project
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.services.export import variance_csv
from buildtrack.services.reports import budget_variance

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/budget-variance")
async def get_budget_variance(
    project_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_reports")),
    session: AsyncSession = Depends(db_session),
):
    project = await load_project(project_id, session)
    report = await budget_variance(session, project)
    await session.commit()
    return ok(report)


@router.get("/budget-variance/export")
async def export_budget_variance(
    project_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_reports")),
    session: AsyncSession = Depends(db_session),
):
    project = await load_project(project_id, session)
    report = await budget_variance(session, project)
    await session.commit()
    filename = f"budget-variance-{project.project_code}.csv"
    return Response(
        content=variance_csv(report),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
