"""
buildtrack.services.calculations

Pure cost and budget arithmetic.

Responsibilities:
- Labour hours and cost (regular/overtime split, daily-rate fallback).
- Equipment rental cost over a date range.
- Subcontractor payment-schedule and performance summaries.
- Phase financial summary and budget variance lines.
- Milestone status from its dates and sign-off.

Nothing here touches the database; callers pass plain values in and persist the
results themselves.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any

from buildtrack.db.models import MilestoneStatus

STANDARD_DAY_HOURS = 8.0
MAX_DAILY_HOURS = 24.0
LONG_SHIFT_HOURS = 12.0
HIGH_HOURLY_RATE = 10_000.0
DEFAULT_OVERTIME_MULTIPLIER = 1.5
PAYMENT_SCHEDULE_TOLERANCE = 1.1

BUDGET_CATEGORIES = ("materials", "labour", "equipment", "subcontractors", "contingency")
# Projects also budget indirect costs, which no phase carries.
PROJECT_BUDGET_CATEGORIES = (
    "materials",
    "labour",
    "equipment",
    "subcontractors",
    "indirect",
    "contingency",
)
PERFORMANCE_FIELDS = ("quality", "timeliness", "communication")


def money(value: float) -> float:
    return round(float(value), 2)


@dataclass(frozen=True, slots=True)
class LabourCost:
    total_hours: float
    regular_hours: float
    overtime_hours: float
    regular_cost: float
    overtime_cost: float
    total_cost: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def hours_between(clock_in: datetime, clock_out: datetime, break_minutes: int = 0) -> float:
    minutes = (clock_out - clock_in).total_seconds() / 60
    return max(0.0, (minutes - (break_minutes or 0)) / 60)


def calculate_labour_cost(
    *,
    total_hours: float,
    hourly_rate: float,
    overtime_hours: float | None = None,
    daily_rate: float | None = None,
    overtime_multiplier: float = DEFAULT_OVERTIME_MULTIPLIER,
) -> LabourCost:
    """
    Split hours into regular/overtime and price them.

    Overtime defaults to everything past a standard 8-hour day; an explicit positive
    `overtime_hours` overrides that split. When no hours were worked but a daily rate
    is known, the daily rate is the cost.
    """

    total = max(0.0, float(total_hours or 0))
    computed_overtime = max(0.0, total - STANDARD_DAY_HOURS)
    overtime = float(overtime_hours) if overtime_hours and overtime_hours > 0 else computed_overtime
    regular = max(0.0, total - overtime)

    rate = float(hourly_rate or 0)
    regular_cost = regular * rate
    overtime_cost = overtime * rate * (overtime_multiplier or DEFAULT_OVERTIME_MULTIPLIER)
    total_cost = regular_cost + overtime_cost
    if daily_rate and daily_rate > 0 and total == 0:
        total_cost = float(daily_rate)

    return LabourCost(
        total_hours=money(total),
        regular_hours=money(regular),
        overtime_hours=money(overtime),
        regular_cost=money(regular_cost),
        overtime_cost=money(overtime_cost),
        total_cost=money(total_cost),
    )


def validate_labour_hours(
    *, total_hours: float, hourly_rate: float, overtime_hours: float | None = None
) -> tuple[list[str], list[str]]:
    """Return (errors, warnings) for a labour entry's hours and rate."""
    errors: list[str] = []
    warnings: list[str] = []
    if hourly_rate is None or hourly_rate < 0:
        errors.append("hourly_rate is required and must be >= 0")
    if total_hours < 0:
        errors.append("total_hours must be >= 0")
    if total_hours > MAX_DAILY_HOURS:
        errors.append("total_hours cannot exceed 24 hours per day")
    if overtime_hours is not None and overtime_hours < 0:
        errors.append("overtime_hours must be >= 0")
    if overtime_hours and overtime_hours > total_hours:
        errors.append("overtime_hours cannot exceed total_hours")
    if total_hours > LONG_SHIFT_HOURS:
        warnings.append("Total hours exceeds 12 hours. Please verify this is correct.")
    if hourly_rate and hourly_rate > HIGH_HOURLY_RATE:
        warnings.append("Hourly rate seems unusually high. Please verify.")
    return errors, warnings


def equipment_cost(daily_rate: float, start: date, end: date | None) -> float:
    # Open-ended assignments accrue no cost until an end date is recorded.
    if end is None or daily_rate <= 0:
        return 0.0
    days = (end - start).days + 1
    return money(max(0, days) * daily_rate)


def payment_schedule_total(schedule: list[dict[str, Any]]) -> float:
    return money(sum(float(p.get("amount") or 0) for p in schedule))


def payment_schedule_summary(contract_value: float, schedule: list[dict[str, Any]]) -> dict[str, Any]:
    scheduled = payment_schedule_total(schedule)
    paid = money(sum(float(p.get("amount") or 0) for p in schedule if p.get("paid")))
    return {
        "contract_value": money(contract_value),
        "total_scheduled": scheduled,
        "total_paid": paid,
        "total_outstanding": money(max(0.0, contract_value - paid)),
        "milestones": len(schedule),
        "milestones_paid": sum(1 for p in schedule if p.get("paid")),
    }


def average_performance(performance: dict[str, Any] | None) -> float:
    """Mean of the 1-5 ratings that were actually given (zero/missing ignored)."""
    if not performance:
        return 0.0
    ratings = [float(performance.get(k) or 0) for k in PERFORMANCE_FIELDS]
    given = [r for r in ratings if r > 0]
    if not given:
        return 0.0
    return round(sum(given) / len(given), 1)


def percentage(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def phase_financial_summary(
    budget_allocation: dict[str, Any] | None,
    actual_spending: dict[str, Any] | None,
    financial_states: dict[str, Any] | None = None,
) -> dict[str, float]:
    budget = float((budget_allocation or {}).get("total") or 0)
    actual = float((actual_spending or {}).get("total") or 0)
    committed = float((financial_states or {}).get("committed") or 0)
    variance = actual - budget
    return {
        "budget_total": money(budget),
        "actual_total": money(actual),
        "committed": money(committed),
        "variance": money(variance),
        "variance_percentage": percentage(variance, budget),
        "utilization_percentage": percentage(actual, budget),
        "remaining": money(max(0.0, budget - actual - committed)),
    }


def variance_line(name: str, budget: float, actual: float) -> dict[str, Any]:
    """Budget minus actual; positive means under budget."""
    variance = budget - actual
    return {
        "category": name,
        "budget": money(budget),
        "actual": money(actual),
        "variance": money(variance),
        "variance_percentage": percentage(variance, budget),
        "status": "over_budget" if actual > budget and budget > 0 else "within_budget",
    }


def normalize_budget(
    raw: dict[str, Any] | None, categories: tuple[str, ...] = BUDGET_CATEGORIES
) -> dict[str, float]:
    """Fill every budget category; total defaults to the category sum when absent."""
    raw = raw or {}
    budget = {k: money(float(raw.get(k) or 0)) for k in categories}
    total = raw.get("total")
    budget["total"] = money(float(total)) if total else money(sum(budget.values()))
    return budget


def milestone_status(
    *,
    target_date: date | None,
    actual_date: date | None,
    sign_off_required: bool,
    sign_off_date: date | None,
    today: date | None = None,
) -> MilestoneStatus:
    """
    A milestone is complete once it has an actual date and, where required, a
    sign-off. Until then it is overdue when its target date has passed.
    """

    if actual_date is not None:
        if sign_off_required and sign_off_date is None:
            return MilestoneStatus.awaiting_sign_off
        return MilestoneStatus.completed
    if target_date is not None and target_date < (today or date.today()):
        return MilestoneStatus.overdue
    return MilestoneStatus.pending


# --- Module Notes -----------------------------------------------------------
# Money is rounded to 2 dp at the edges (stored values), never mid-calculation.
