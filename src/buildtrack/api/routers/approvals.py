"""
buildtrack.api.routers.approvals

Approval queue across expenses, labour entries and professional activities.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.api.deps import db_session
from buildtrack.api.envelope import as_dict, ok
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.models import ExpenseStatus
from buildtrack.db.repositories.expenses import ExpenseRepo
from buildtrack.db.repositories.labour_entries import LabourEntryRepo
from buildtrack.db.repositories.professional import ProfessionalActivityRepo

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.get("/pending")
async def list_pending(
    limit: int = Query(default=100, ge=1, le=500),
    _: Principal = Depends(require_permission("view_approvals")),
    session: AsyncSession = Depends(db_session),
):
    expenses = await ExpenseRepo(session).list_all(statuses=[ExpenseStatus.pending])
    labour = await LabourEntryRepo(session).pending(limit=limit)
    activities = await ProfessionalActivityRepo(session).pending(limit=limit)
    expenses = expenses[:limit]
    return ok(
        {
            "expenses": [as_dict(e) for e in expenses],
            "labour_entries": [as_dict(e) for e in labour],
            "professional_activities": [as_dict(a) for a in activities],
            "counts": {
                "expenses": len(expenses),
                "labour_entries": len(labour),
                "professional_activities": len(activities),
                "total": len(expenses) + len(labour) + len(activities),
            },
        }
    )
