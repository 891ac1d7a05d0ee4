"""
buildtrack.api.routers.expenses

Expense endpoints.

Responsibilities:
- List (filters + pagination), export as CSV, create, read, update, delete.
- Archive/restore and the approve/reject workflow.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from buildtrack.api.deps import csv_list, db_session, page_params, settings_dep
from buildtrack.api.envelope import as_dict, ok
from buildtrack.api.routers.common import DecisionIn, RejectionIn
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import ExpenseStatus, IndirectCostCategory, Project
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.expenses import ExpenseRepo
from buildtrack.db.repositories.paging import PageRequest
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.errors import ValidationFailed
from buildtrack.services.expenses import ExpenseService
from buildtrack.services.export import EXPENSE_COLUMNS, expense_rows, render_csv
from buildtrack.settings import Settings

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


class ExpenseIn(BaseModel):
    project_id: uuid.UUID
    phase_id: uuid.UUID | None = None
    amount: float = Field(gt=0)
    category: str = Field(min_length=1, max_length=128)
    description: str | None = None
    vendor: str | None = Field(default=None, max_length=256)
    expense_date: date | None = None
    payment_method: str | None = Field(default=None, max_length=64)
    is_indirect_cost: bool = False
    indirect_cost_category: IndirectCostCategory | None = None
    notes: str | None = None


class ExpenseUpdate(BaseModel):
    phase_id: uuid.UUID | None = None
    amount: float | None = Field(default=None, gt=0)
    category: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    vendor: str | None = Field(default=None, max_length=256)
    expense_date: date | None = None
    payment_method: str | None = Field(default=None, max_length=64)
    status: ExpenseStatus | None = None
    is_indirect_cost: bool | None = None
    indirect_cost_category: IndirectCostCategory | None = None
    notes: str | None = None


def expense_filters(
    project_id: uuid.UUID | None = None,
    phase_id: uuid.UUID | None = None,
    status: str | None = Query(default=None, description="Comma separated statuses"),
    category: str | None = None,
    archived: bool = False,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
) -> dict[str, Any]:
    try:
        statuses = [ExpenseStatus(s.upper()) for s in csv_list(status)]
    except ValueError as e:
        raise ValidationFailed(f"Invalid status filter: {status}") from e
    return {
        "project_id": project_id,
        "phase_id": phase_id,
        "statuses": statuses,
        "category": category,
        "archived": archived,
        "date_from": date_from,
        "date_to": date_to,
        "search": search,
    }


@router.get("")
async def list_expenses(
    filters: dict[str, Any] = Depends(expense_filters),
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_expenses")),
    session: AsyncSession = Depends(db_session),
):
    result = await ExpenseRepo(session).search(page, **filters)
    return ok(
        {
            "expenses": [as_dict(e) for e in result.items],
            "pagination": result.meta(),
            "total_amount": round(sum(e.amount for e in result.items), 2),
        }
    )


@router.get("/export")
async def export_expenses(
    filters: dict[str, Any] = Depends(expense_filters),
    _: Principal = Depends(require_permission("export_expenses")),
    session: AsyncSession = Depends(db_session),
):
    expenses = await ExpenseRepo(session).list_all(**filters)
    project_ids = {e.project_id for e in expenses}
    projects = {pid: await session.get(Project, pid) for pid in project_ids}
    phases = await PhaseRepo(session).by_ids(e.phase_id for e in expenses if e.phase_id)
    body = render_csv(
        EXPENSE_COLUMNS,
        expense_rows(
            expenses,
            project_codes={pid: p.project_code for pid, p in projects.items() if p is not None},
            phase_names={pid: p.phase_name for pid, p in phases.items()},
        ),
    )
    filename = f"expenses-{date.today():%Y%m%d}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("", status_code=HTTP_201_CREATED)
async def create_expense(
    body: ExpenseIn,
    principal: Principal = Depends(require_permission("create_expense")),
    session: AsyncSession = Depends(db_session),
):
    expense = await ExpenseService(session).create(body.model_dump(), principal)
    return ok(as_dict(expense), "Expense created successfully", status_code=HTTP_201_CREATED)


@router.get("/{expense_id}")
async def get_expense(
    expense_id: uuid.UUID,
    _: Principal = Depends(require_permission("view_expenses")),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
):
    expense = await ExpenseService(session).get(expense_id)
    approvals = await ApprovalRepo(session).list_for(expense.id)
    audit = await AuditRepo(session).list_for_entity("EXPENSE", expense.id, limit=settings.audit_log_limit)
    return ok(
        as_dict(
            expense,
            approvals=[as_dict(a) for a in approvals],
            audit_logs=[as_dict(a) for a in audit],
        )
    )


@router.patch("/{expense_id}")
async def update_expense(
    expense_id: uuid.UUID,
    body: ExpenseUpdate,
    principal: Principal = Depends(require_permission("edit_expense")),
    session: AsyncSession = Depends(db_session),
):
    service = ExpenseService(session)
    expense = await service.get(expense_id)
    expense = await service.update(expense, body.model_dump(exclude_unset=True), principal)
    return ok(as_dict(expense), "Expense updated successfully")


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: uuid.UUID,
    force: bool = Query(default=False),
    principal: Principal = Depends(require_permission("delete_expense")),
    session: AsyncSession = Depends(db_session),
):
    await ExpenseService(session).delete(expense_id, principal, force=force)
    return ok({"expense_id": str(expense_id)}, "Expense permanently deleted")


@router.post("/{expense_id}/archive")
async def archive_expense(
    expense_id: uuid.UUID,
    principal: Principal = Depends(require_permission("archive_expense")),
    session: AsyncSession = Depends(db_session),
):
    expense = await ExpenseService(session).archive(expense_id, principal)
    return ok(as_dict(expense), "Expense archived successfully")


@router.post("/{expense_id}/restore")
async def restore_expense(
    expense_id: uuid.UUID,
    principal: Principal = Depends(require_permission("archive_expense")),
    session: AsyncSession = Depends(db_session),
):
    expense = await ExpenseService(session).restore(expense_id, principal)
    return ok(as_dict(expense), "Expense restored successfully")


@router.post("/{expense_id}/approve")
async def approve_expense(
    expense_id: uuid.UUID,
    body: DecisionIn | None = None,
    principal: Principal = Depends(require_permission("approve_expense")),
    session: AsyncSession = Depends(db_session),
):
    notes = (body.notes if body else None) or ""
    expense, warnings = await ExpenseService(session).approve(expense_id, principal, notes=notes)
    return ok(as_dict(expense, warnings=warnings), "Expense approved successfully")


@router.post("/{expense_id}/reject")
async def reject_expense(
    expense_id: uuid.UUID,
    body: RejectionIn,
    principal: Principal = Depends(require_permission("reject_expense")),
    session: AsyncSession = Depends(db_session),
):
    expense = await ExpenseService(session).reject(expense_id, principal, reason=body.reason)
    return ok(as_dict(expense), "Expense rejected")


# --- Module Notes -----------------------------------------------------------
# `/export` is declared before `/{expense_id}` so the literal path wins.
