"""
buildtrack.services.finance

Derived financial state for phases and projects.

Responsibilities:
- Recalculate a phase's actual spending and financial states from its cost sources.
- Recalculate and persist a project's finance snapshot (capital vs usage).
- Check capital availability and phase, phase-labour and indirect-cost budget
  headroom before costs are accepted.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Phase, Project, ProjectFinance
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import CapitalRepo, ProjectFinanceRepo
from buildtrack.db.repositories.spending import SpendingRepo
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import money, phase_financial_summary

log = get_logger(__name__)

SPENDING_SOURCES = ("expenses", "labour", "equipment", "subcontractors", "professional_services")
LABOUR_BUDGET_TOLERANCE = 0.05


@dataclass(slots=True)
class CapitalCheck:
    is_valid: bool
    available: float
    required: float
    total_invested: float = 0.0
    total_used: float = 0.0
    committed_cost: float = 0.0
    tracking_enabled: bool = True
    message: str = ""

    @property
    def shortfall(self) -> float:
        return money(max(0.0, self.required - self.available))

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "available": self.available,
            "required": self.required,
            "shortfall": self.shortfall,
            "total_invested": self.total_invested,
            "total_used": self.total_used,
            "committed_cost": self.committed_cost,
            "message": self.message,
        }


@dataclass(slots=True)
class BudgetCheck:
    within_budget: bool
    available: float
    required: float
    budget_total: float
    warnings: list[str] = field(default_factory=list)


async def recalculate_phase_spending(session: AsyncSession, phase: Phase) -> Phase:
    await session.flush()
    totals = await SpendingRepo(session).totals(phase_id=phase.id)
    actual = {key: money(totals[key]) for key in SPENDING_SOURCES}
    actual["total"] = money(sum(actual.values()))
    committed = money(totals["committed"])

    phase.actual_spending = actual
    summary = phase_financial_summary(phase.budget_allocation, actual, {"committed": committed})
    phase.financial_states = {
        "estimated": money(actual["total"] + committed + totals["pending"]),
        "committed": committed,
        "actual": actual["total"],
        "remaining": summary["remaining"],
    }
    await session.flush()
    log.info(
        "phase_spending_recalculated",
        phase_id=str(phase.id),
        actual=actual["total"],
        committed=committed,
    )
    return phase


async def recalculate_phase_by_id(session: AsyncSession, phase_id: uuid.UUID | None) -> None:
    if phase_id is None:
        return
    phase = await PhaseRepo(session).get(phase_id)
    if phase is not None:
        await recalculate_phase_spending(session, phase)


async def recalculate_project_finances(
    session: AsyncSession, project_id: uuid.UUID
) -> ProjectFinance:
    await session.flush()
    capital = await CapitalRepo(session).totals(project_id)
    totals = await SpendingRepo(session).totals(project_id=project_id)

    breakdown = {key: money(totals[key]) for key in SPENDING_SOURCES}
    breakdown["indirect_expenses"] = money(totals["indirect_expenses"])
    total_used = money(sum(breakdown.values()))
    committed = money(totals["committed"])
    invested = capital["total_invested"]
    loans = capital["total_loans"]
    equity = capital["total_equity"]

    loan_share = loans / invested if invested else 0.0
    equity_share = equity / invested if invested else 0.0
    values = {
        "total_invested": money(invested),
        "total_loans": money(loans),
        "total_equity": money(equity),
        "total_used": total_used,
        "committed_cost": committed,
        "available_capital": money(invested - total_used - committed),
        "capital_balance": money(invested - total_used),
        "loan_balance": money(loans - total_used * loan_share),
        "equity_balance": money(equity - total_used * equity_share),
        "investor_count": capital["investor_count"],
        "breakdown": breakdown,
    }
    finance = await ProjectFinanceRepo(session).upsert(project_id, values)
    log.info(
        "project_finances_recalculated",
        project_id=str(project_id),
        total_used=total_used,
        available=values["available_capital"],
    )
    return finance


async def validate_capital_availability(
    session: AsyncSession, project_id: uuid.UUID, amount: float
) -> CapitalCheck:
    if amount is None or amount <= 0:
        return CapitalCheck(
            is_valid=False, available=0.0, required=amount or 0.0, message="Invalid amount"
        )

    finance = await recalculate_project_finances(session, project_id)
    invested = finance.total_invested
    if invested <= 0:
        # No capital recorded for this project: funding is not being tracked.
        return CapitalCheck(
            is_valid=True,
            available=0.0,
            required=money(amount),
            tracking_enabled=False,
            message="Capital tracking not enabled for this project",
        )

    available = money(max(0.0, invested - finance.total_used - finance.committed_cost))
    is_valid = available >= amount
    check = CapitalCheck(
        is_valid=is_valid,
        available=available,
        required=money(amount),
        total_invested=invested,
        total_used=finance.total_used,
        committed_cost=finance.committed_cost,
    )
    if is_valid:
        check.message = f"Sufficient capital. Available: {available:,.2f}"
    else:
        check.message = (
            f"Insufficient capital. Available: {available:,.2f}, "
            f"Required: {amount:,.2f}, Shortfall: {check.shortfall:,.2f}"
        )
    return check


async def check_phase_budget(session: AsyncSession, phase: Phase, amount: float) -> BudgetCheck:
    await recalculate_phase_spending(session, phase)
    budget_total = float((phase.budget_allocation or {}).get("total") or 0)
    if budget_total <= 0:
        return BudgetCheck(
            within_budget=True,
            available=0.0,
            required=money(amount),
            budget_total=0.0,
            warnings=[f"Phase {phase.phase_name} has no budget allocation"],
        )
    available = float((phase.financial_states or {}).get("remaining") or 0)
    within = amount <= available
    warnings = []
    if not within:
        warnings.append(
            f"Amount {amount:,.2f} exceeds phase {phase.phase_name} available budget "
            f"{available:,.2f}"
        )
    return BudgetCheck(
        within_budget=within,
        available=money(available),
        required=money(amount),
        budget_total=money(budget_total),
        warnings=warnings,
    )


async def check_phase_labour_budget(
    session: AsyncSession, phase: Phase, cost: float
) -> BudgetCheck:
    """
    Check a labour cost against the phase's labour allocation.

    Shortfalls up to `LABOUR_BUDGET_TOLERANCE` of the allocation are accepted.
    A phase without a labour allocation is not budget-tracked for labour.
    """

    labour_budget = float((phase.budget_allocation or {}).get("labour") or 0)
    if cost <= 0 or labour_budget <= 0:
        return BudgetCheck(
            within_budget=True, available=0.0, required=money(cost), budget_total=money(labour_budget)
        )

    await recalculate_phase_spending(session, phase)
    spent = float((phase.actual_spending or {}).get("labour") or 0)
    available = max(0.0, labour_budget - spent)
    shortfall = max(0.0, cost - available)
    check = BudgetCheck(
        within_budget=shortfall <= labour_budget * LABOUR_BUDGET_TOLERANCE,
        available=money(available),
        required=money(cost),
        budget_total=money(labour_budget),
    )
    if not check.within_budget:
        check.warnings.append(
            f"Insufficient phase labour budget. Available: {available:,.2f}, "
            f"Required: {cost:,.2f}, Shortfall: {shortfall:,.2f}"
        )
    return check


async def check_indirect_budget(
    session: AsyncSession, project: Project, amount: float
) -> BudgetCheck:
    indirect_budget = float((project.budget or {}).get("indirect") or 0)
    if indirect_budget <= 0:
        return BudgetCheck(
            within_budget=True,
            available=0.0,
            required=money(amount),
            budget_total=0.0,
            warnings=[f"Project {project.project_code} has no indirect costs budget"],
        )

    totals = await SpendingRepo(session).totals(project_id=project.id)
    available = max(0.0, indirect_budget - totals["indirect_expenses"])
    check = BudgetCheck(
        within_budget=amount <= available,
        available=money(available),
        required=money(amount),
        budget_total=money(indirect_budget),
    )
    if not check.within_budget:
        check.warnings.append(
            f"Amount {amount:,.2f} exceeds the indirect costs budget available {available:,.2f}"
        )
    return check


async def refresh_financials(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    phase_ids: list[uuid.UUID | None] | tuple[uuid.UUID | None, ...] = (),
) -> None:
    """Recalculate every touched phase, then the owning project."""
    for phase_id in {p for p in phase_ids if p is not None}:
        await recalculate_phase_by_id(session, phase_id)
    await recalculate_project_finances(session, project_id)
