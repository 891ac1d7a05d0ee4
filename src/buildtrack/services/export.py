"""
buildtrack.services.export

CSV rendering for list exports and reports.
"""

from __future__ import annotations

import csv
import enum
import io
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from buildtrack.db.models import Expense

EXPENSE_COLUMNS = (
    "expense_code",
    "expense_date",
    "project_code",
    "phase_name",
    "category",
    "description",
    "vendor",
    "amount",
    "payment_method",
    "status",
    "is_indirect_cost",
    "indirect_cost_category",
    "submitted_by_name",
)

VARIANCE_COLUMNS = ("category", "budget", "actual", "variance", "variance_percentage", "status")


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return "yes" if value else "no"
    return value


def render_csv(columns: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({col: _cell(row.get(col)) for col in columns})
    return buf.getvalue()


def expense_rows(
    expenses: Iterable[Expense],
    *,
    project_codes: Mapping[Any, str],
    phase_names: Mapping[Any, str],
) -> list[dict[str, Any]]:
    rows = []
    for expense in expenses:
        rows.append(
            {
                **{col: getattr(expense, col, None) for col in EXPENSE_COLUMNS},
                "project_code": project_codes.get(expense.project_id, ""),
                "phase_name": phase_names.get(expense.phase_id, ""),
            }
        )
    return rows


def variance_csv(report: Mapping[str, Any]) -> str:
    lines = list(report["categories"])
    lines.append({"category": "TOTAL", **report["totals"]})
    for phase in report["phases"]:
        summary = phase["summary"]
        lines.append(
            {
                "category": f"Phase: {phase['phase_name']}",
                "budget": summary["budget_total"],
                "actual": summary["actual_total"],
                "variance": summary["variance"],
                "variance_percentage": summary["variance_percentage"],
                "status": "over_budget" if summary["variance"] > 0 else "within_budget",
            }
        )
    return render_csv(VARIANCE_COLUMNS, lines)


# --- Module Notes -----------------------------------------------------------
# Renderers return text; routers wrap it in a `text/csv` response with a
# download filename.
