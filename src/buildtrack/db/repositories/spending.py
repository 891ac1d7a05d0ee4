"""
buildtrack.db.repositories.spending

Aggregate cost queries across every spending source.

Responsibilities:
- Sum approved spending per source for a phase or a whole project.
- Sum committed (contracted but unpaid) and pending (awaiting approval) amounts.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import (
    ActivityStatus,
    Equipment,
    Expense,
    ExpenseStatus,
    LabourEntry,
    LabourEntryStatus,
    ProfessionalActivity,
    Subcontractor,
    SubcontractorStatus,
)

APPROVED_EXPENSE_STATUSES = (ExpenseStatus.approved, ExpenseStatus.paid)
APPROVED_LABOUR_STATUSES = (LabourEntryStatus.approved, LabourEntryStatus.paid)
OPEN_SUBCONTRACT_STATUSES = (SubcontractorStatus.pending, SubcontractorStatus.active)


class SpendingRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _sum(self, column: Any, *conditions: Any) -> float:
        stmt = select(func.coalesce(func.sum(column), 0.0)).where(*conditions)
        return float((await self._session.execute(stmt)).scalar_one())

    async def totals(
        self, *, project_id: uuid.UUID | None = None, phase_id: uuid.UUID | None = None
    ) -> dict[str, float]:
        if project_id is None and phase_id is None:
            raise ValueError("project_id or phase_id is required")

        def scope(model: Any) -> list[Any]:
            conds = []
            if project_id is not None:
                conds.append(model.project_id == project_id)
            if phase_id is not None:
                conds.append(model.phase_id == phase_id)
            return conds

        live_expense = [*scope(Expense), Expense.archived_at.is_(None)]
        direct_expenses = await self._sum(
            Expense.amount,
            *live_expense,
            Expense.status.in_(APPROVED_EXPENSE_STATUSES),
            Expense.is_indirect_cost.is_(False),
        )
        indirect_expenses = await self._sum(
            Expense.amount,
            *live_expense,
            Expense.status.in_(APPROVED_EXPENSE_STATUSES),
            Expense.is_indirect_cost.is_(True),
        )
        pending_expenses = await self._sum(
            Expense.amount, *live_expense, Expense.status == ExpenseStatus.pending
        )

        live_labour = [*scope(LabourEntry), LabourEntry.deleted_at.is_(None)]
        labour = await self._sum(
            LabourEntry.total_cost,
            *live_labour,
            LabourEntry.status.in_(APPROVED_LABOUR_STATUSES),
        )
        pending_labour = await self._sum(
            LabourEntry.total_cost,
            *live_labour,
            LabourEntry.status == LabourEntryStatus.submitted,
        )

        equipment = await self._sum(
            Equipment.total_cost, *scope(Equipment), Equipment.deleted_at.is_(None)
        )

        live_activity = [*scope(ProfessionalActivity), ProfessionalActivity.deleted_at.is_(None)]
        professional = await self._sum(
            ProfessionalActivity.fees_charged + ProfessionalActivity.expenses_incurred,
            *live_activity,
            ProfessionalActivity.status == ActivityStatus.approved,
        )
        pending_professional = await self._sum(
            ProfessionalActivity.fees_charged + ProfessionalActivity.expenses_incurred,
            *live_activity,
            ProfessionalActivity.status == ActivityStatus.pending_approval,
        )

        subs_stmt = select(Subcontractor).where(
            *scope(Subcontractor), Subcontractor.deleted_at.is_(None)
        )
        subs = (await self._session.execute(subs_stmt)).scalars().all()
        subcontractors_paid = 0.0
        subcontractors_committed = 0.0
        for sub in subs:
            paid = sum(
                float(p.get("amount") or 0) for p in (sub.payment_schedule or []) if p.get("paid")
            )
            subcontractors_paid += paid
            if sub.status in OPEN_SUBCONTRACT_STATUSES:
                subcontractors_committed += max(0.0, float(sub.contract_value) - paid)

        return {
            "expenses": direct_expenses,
            "indirect_expenses": indirect_expenses,
            "labour": labour,
            "equipment": equipment,
            "subcontractors": subcontractors_paid,
            "professional_services": professional,
            "committed": subcontractors_committed,
            "pending": pending_expenses + pending_labour + pending_professional,
        }

    async def count_active_labour_for_phase(self, phase_id: uuid.UUID) -> int:
        stmt = select(func.count()).where(
            LabourEntry.phase_id == phase_id, LabourEntry.deleted_at.is_(None)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def count_project_dependents(self, project_id: uuid.UUID) -> dict[str, int]:
        counts: dict[str, int] = {}
        for name, model in (
            ("expenses", Expense),
            ("labour_entries", LabourEntry),
            ("equipment", Equipment),
            ("subcontractors", Subcontractor),
            ("professional_activities", ProfessionalActivity),
        ):
            stmt = select(func.count()).where(model.project_id == project_id)
            counts[name] = int((await self._session.execute(stmt)).scalar_one())
        return counts


# --- Module Notes -----------------------------------------------------------
# Every query here filters to approved (or paid) rows; pending amounts are summed
# separately for the phase `estimated` figure.
