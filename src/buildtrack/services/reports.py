"""
buildtrack.services.reports

Budget variance reporting.

Responsibilities:
- Compare a project's budget categories with recalculated actual spending.
- Summarise each phase's budget position.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Project
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.services.calculations import (
    PROJECT_BUDGET_CATEGORIES,
    money,
    percentage,
    phase_financial_summary,
    variance_line,
)
from buildtrack.services.finance import recalculate_phase_spending, recalculate_project_finances

# Budget category -> spending sources that count against it.
CATEGORY_SOURCES: dict[str, tuple[str, ...]] = {
    "materials": ("expenses",),
    "labour": ("labour",),
    "equipment": ("equipment",),
    "subcontractors": ("subcontractors", "professional_services"),
    "indirect": ("indirect_expenses",),
    "contingency": (),
}


async def budget_variance(session: AsyncSession, project: Project) -> dict[str, Any]:
    finance = await recalculate_project_finances(session, project.id)
    breakdown = finance.breakdown or {}
    budget = project.budget or {}

    categories = [
        variance_line(
            name,
            float(budget.get(name) or 0),
            sum(float(breakdown.get(src) or 0) for src in CATEGORY_SOURCES[name]),
        )
        for name in PROJECT_BUDGET_CATEGORIES
    ]

    budget_total = float(budget.get("total") or 0)
    actual_total = finance.total_used
    totals = variance_line("TOTAL", budget_total, actual_total)
    totals.pop("category")

    phases = []
    for phase in await PhaseRepo(session).list_for_project(project.id):
        await recalculate_phase_spending(session, phase)
        phases.append(
            {
                "phase_id": str(phase.id),
                "phase_name": phase.phase_name,
                "phase_code": phase.phase_code,
                "status": phase.status.value,
                "summary": phase_financial_summary(
                    phase.budget_allocation, phase.actual_spending, phase.financial_states
                ),
            }
        )

    return {
        "project": {
            "id": str(project.id),
            "project_code": project.project_code,
            "project_name": project.project_name,
        },
        "categories": categories,
        "totals": totals,
        "committed_cost": finance.committed_cost,
        "utilization_percentage": percentage(actual_total, budget_total),
        "remaining_budget": money(budget_total - actual_total),
        "phases": phases,
    }


# --- Module Notes -----------------------------------------------------------
# Actuals come from a fresh recalculation, so the report reflects approvals made
# since the last stored snapshot.
