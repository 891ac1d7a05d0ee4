"""
buildtrack.api.routers.reallocations

Budget reallocation requests under `/api/budget-reallocations`.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.common import DecisionIn, RejectionIn
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import ReallocationStatus, ReallocationType
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.reallocations import BudgetReallocationRepo
from buildtrack.services.reallocations import BudgetReallocationService

router = APIRouter(prefix="/api/budget-reallocations", tags=["budget-reallocations"])


class ReallocationIn(BaseModel):
    project_id: uuid.UUID
    reallocation_type: ReallocationType
    from_phase_id: uuid.UUID | None = None
    to_phase_id: uuid.UUID | None = None
    amount: float = Field(gt=0)
    reason: str = Field(default="", max_length=2000)
    budget_breakdown: dict[str, float] = Field(default_factory=dict)


@router.get("")
async def list_reallocations(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    status: ReallocationStatus | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_budget_reallocations")),
    session: AsyncSession = Depends(db_session),
):
    result = await BudgetReallocationRepo(session).search(
        page, project_id=project_id, phase_id=phase_id, status=status
    )
    return ok(
        {"reallocations": [as_dict(r) for r in result.items], "pagination": result.meta()}
    )


@router.post("", status_code=HTTP_201_CREATED)
async def create_reallocation(
    body: ReallocationIn,
    principal: Principal = Depends(require_permission("create_budget_reallocation")),
    session: AsyncSession = Depends(db_session),
):
    reallocation = await BudgetReallocationService(session).create(body.model_dump(), principal)
    return ok(
        as_dict(reallocation),
        "Budget reallocation request created successfully",
        status_code=HTTP_201_CREATED,
    )


@router.get("/{reallocation_id}")
async def get_reallocation(
    reallocation_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_budget_reallocations")),
    session: AsyncSession = Depends(db_session),
):
    reallocation = await BudgetReallocationService(session).get(reallocation_id)
    approvals = await ApprovalRepo(session).list_for(reallocation.id)
    return ok(as_dict(reallocation, approvals=[as_dict(a) for a in approvals]))


@router.post("/{reallocation_id}/approve")
async def approve_reallocation(
    reallocation_id: uuid.UUID,
    body: DecisionIn | None = None,
    principal: Principal = Depends(require_permission("approve_budget_reallocation")),
    session: AsyncSession = Depends(db_session),
):
    notes = (body.notes if body else None) or ""
    reallocation, warnings = await BudgetReallocationService(session).approve(
        reallocation_id, principal, notes=notes
    )
    return ok(
        as_dict(reallocation, warnings=warnings),
        "Budget reallocation approved and executed successfully",
    )


@router.post("/{reallocation_id}/reject")
async def reject_reallocation(
    reallocation_id: uuid.UUID,
    body: RejectionIn,
    principal: Principal = Depends(require_permission("approve_budget_reallocation")),
    session: AsyncSession = Depends(db_session),
):
    reallocation = await BudgetReallocationService(session).reject(
        reallocation_id, principal, reason=body.reason
    )
    return ok(as_dict(reallocation), "Budget reallocation rejected")


# --- Module Notes -----------------------------------------------------------
# Approve and reject share the `approve_budget_reallocation` permission.
