from __future__ import annotations

from datetime import date, datetime

import pytest

from buildtrack.db.models import MilestoneStatus
from buildtrack.services.calculations import (
    average_performance,
    calculate_labour_cost,
    equipment_cost,
    hours_between,
    milestone_status,
    normalize_budget,
    payment_schedule_summary,
    phase_financial_summary,
    validate_labour_hours,
    variance_line,
)


def test_labour_cost_splits_overtime_past_eight_hours() -> None:
    cost = calculate_labour_cost(total_hours=10, hourly_rate=500)
    assert cost.regular_hours == 8
    assert cost.overtime_hours == 2
    assert cost.regular_cost == 4000
    assert cost.overtime_cost == 1500
    assert cost.total_cost == 5500


def test_labour_cost_explicit_overtime_and_multiplier() -> None:
    cost = calculate_labour_cost(
        total_hours=8, hourly_rate=100, overtime_hours=3, overtime_multiplier=2.0
    )
    assert cost.regular_hours == 5
    assert cost.overtime_cost == 600
    assert cost.total_cost == 1100


def test_labour_cost_falls_back_to_daily_rate() -> None:
    cost = calculate_labour_cost(total_hours=0, hourly_rate=0, daily_rate=1800)
    assert cost.total_cost == 1800
    assert cost.total_hours == 0


def test_hours_between_subtracts_break() -> None:
    hours = hours_between(datetime(2026, 3, 2, 7, 0), datetime(2026, 3, 2, 17, 0), 60)
    assert hours == pytest.approx(9.0)


def test_validate_labour_hours() -> None:
    errors, warnings = validate_labour_hours(total_hours=13, hourly_rate=20_000)
    assert errors == []
    assert len(warnings) == 2

    errors, _ = validate_labour_hours(total_hours=6, hourly_rate=100, overtime_hours=7)
    assert errors == ["overtime_hours cannot exceed total_hours"]

    errors, _ = validate_labour_hours(total_hours=25, hourly_rate=100)
    assert "total_hours cannot exceed 24 hours per day" in errors


def test_equipment_cost_is_inclusive_of_both_days() -> None:
    assert equipment_cost(2500, date(2026, 3, 1), date(2026, 3, 10)) == 25_000
    assert equipment_cost(2500, date(2026, 3, 1), None) == 0
    assert equipment_cost(0, date(2026, 3, 1), date(2026, 3, 2)) == 0


def test_payment_schedule_summary() -> None:
    schedule = [
        {"milestone": "Mobilisation", "amount": 100_000, "paid": True},
        {"milestone": "Roofing", "amount": 250_000, "paid": False},
    ]
    summary = payment_schedule_summary(400_000, schedule)
    assert summary["total_scheduled"] == 350_000
    assert summary["total_paid"] == 100_000
    assert summary["total_outstanding"] == 300_000
    assert summary["milestones_paid"] == 1


def test_average_performance_ignores_missing_ratings() -> None:
    assert average_performance({"quality": 4, "timeliness": 5}) == 4.5
    assert average_performance({}) == 0.0
    assert average_performance(None) == 0.0


def test_phase_financial_summary() -> None:
    summary = phase_financial_summary({"total": 1000}, {"total": 400}, {"committed": 250})
    assert summary["variance"] == -600
    assert summary["utilization_percentage"] == 40.0
    assert summary["remaining"] == 350


def test_phase_financial_summary_without_budget() -> None:
    summary = phase_financial_summary(None, {"total": 50})
    assert summary["utilization_percentage"] == 0.0
    assert summary["remaining"] == 0


def test_variance_line_status() -> None:
    assert variance_line("labour", 100, 150)["status"] == "over_budget"
    line = variance_line("materials", 200, 50)
    assert line["status"] == "within_budget"
    assert line["variance"] == 150
    assert line["variance_percentage"] == 75.0


def test_normalize_budget_defaults_total_to_category_sum() -> None:
    budget = normalize_budget({"materials": 100, "labour": 50.25})
    assert budget["total"] == 150.25
    assert budget["equipment"] == 0

    explicit = normalize_budget({"materials": 100, "total": 1000})
    assert explicit["total"] == 1000


@pytest.mark.parametrize(
    ("target", "actual", "sign_off_required", "sign_off", "expected"),
    [
        (date(2026, 5, 1), None, False, None, MilestoneStatus.pending),
        (date(2026, 3, 1), None, False, None, MilestoneStatus.overdue),
        (None, None, False, None, MilestoneStatus.pending),
        (date(2026, 3, 1), date(2026, 3, 5), True, None, MilestoneStatus.awaiting_sign_off),
        (date(2026, 3, 1), date(2026, 3, 5), True, date(2026, 3, 6), MilestoneStatus.completed),
        (date(2026, 5, 1), date(2026, 3, 5), False, None, MilestoneStatus.completed),
    ],
)
def test_milestone_status(target, actual, sign_off_required, sign_off, expected) -> None:
    status = milestone_status(
        target_date=target,
        actual_date=actual,
        sign_off_required=sign_off_required,
        sign_off_date=sign_off,
        today=date(2026, 4, 1),
    )
    assert status is expected
