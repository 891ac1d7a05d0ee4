"""
buildtrack.services.projects

Project lifecycle and capital service.

Responsibilities:
- Create projects (unique code, budget warnings, default phases, finance snapshot).
- Update with change tracking; archive or permanently delete.
- Record capital contributions and expose finance statistics.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import CapitalContribution, Project, ProjectFinance, ProjectStatus
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.projects import CapitalRepo, ProjectFinanceRepo, ProjectRepo
from buildtrack.db.repositories.spending import SpendingRepo
from buildtrack.errors import Conflict, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import PROJECT_BUDGET_CATEGORIES, normalize_budget
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import recalculate_project_finances
from buildtrack.services.phases import PhaseService
from buildtrack.settings import Settings

log = get_logger(__name__)

_SNAPSHOT_FIELDS = ("project_code", "project_name", "status", "budget", "location", "client")


def finance_statistics(project: Project, finance: ProjectFinance | None) -> dict[str, Any]:
    invested = finance.total_invested if finance else 0.0
    budget_total = float((project.budget or {}).get("total") or 0)
    warning = None
    if invested > 0 and budget_total > invested:
        warning = f"Budget ({budget_total:,.2f}) exceeds capital ({invested:,.2f})"
    return {
        "total_invested": invested,
        "total_used": finance.total_used if finance else 0.0,
        "capital_balance": finance.capital_balance if finance else 0.0,
        "available_capital": finance.available_capital if finance else 0.0,
        "budget_vs_capital_warning": warning,
    }


class ProjectService:
    def __init__(self, *, session: AsyncSession, settings: Settings) -> None:
        self._session = session
        self._settings = settings
        self._projects = ProjectRepo(session)
        self._audit = AuditRepo(session)

    async def create(
        self, data: dict[str, Any], principal: Principal
    ) -> tuple[Project, dict[str, Any]]:
        code = data["project_code"].strip()
        name = data["project_name"].strip()
        if await self._projects.get_by_code(code) is not None:
            raise ValidationFailed("Project with this code already exists")

        budget = normalize_budget(data.get("budget"), PROJECT_BUDGET_CATEGORIES)
        notices: dict[str, Any] = {}
        if budget["total"] <= 0:
            if self._settings.require_project_budget:
                raise ValidationFailed("Project budget is required and must be greater than 0")
            notices["budget_warning"] = {
                "message": "Project created with zero budget. Please set budget before recording costs.",
                "type": "zero_budget",
            }

        project = await self._projects.create(
            project_code=code,
            project_name=name,
            description=(data.get("description") or "").strip(),
            location=(data.get("location") or "").strip(),
            client=(data.get("client") or "").strip(),
            status=data.get("status") or ProjectStatus.planning,
            start_date=data.get("start_date"),
            planned_end_date=data.get("planned_end_date"),
            budget=budget,
            created_by=principal.subject,
        )

        if data.get("auto_create_phases", True):
            phases = await PhaseService(self._session).create_defaults(project, principal)
            notices["phases_created"] = len(phases)

        finance = await recalculate_project_finances(self._session, project.id)
        if finance.total_invested == 0:
            notices["capital_info"] = {
                "message": "No capital allocated to this project yet.",
                "total_invested": 0,
            }

        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="PROJECT",
            entity_id=project.id,
            project_id=project.id,
            changes={"created": snapshot(project, _SNAPSHOT_FIELDS)},
        )
        await self._session.commit()
        log.info("project_created", project_id=str(project.id), project_code=code)
        return project, notices

    async def update(self, project: Project, data: dict[str, Any], principal: Principal) -> Project:
        updates: dict[str, Any] = {}
        for key in (
            "project_name",
            "description",
            "location",
            "client",
            "status",
            "start_date",
            "planned_end_date",
            "actual_end_date",
            "completion_percentage",
        ):
            if key in data and data[key] is not None:
                value = data[key]
                updates[key] = value.strip() if isinstance(value, str) else value

        if data.get("project_code") and data["project_code"].strip() != project.project_code:
            code = data["project_code"].strip()
            if await self._projects.get_by_code(code) is not None:
                raise ValidationFailed("Project with this code already exists")
            updates["project_code"] = code

        if data.get("budget") is not None:
            merged = dict(project.budget or {})
            merged.update({k: v for k, v in data["budget"].items() if v is not None})
            updates["budget"] = normalize_budget(merged, PROJECT_BUDGET_CATEGORIES)

        if not updates:
            raise ValidationFailed("No valid fields to update")

        changes = apply_changes(project, updates)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="PROJECT",
                entity_id=project.id,
                project_id=project.id,
                changes=changes,
            )
        await self._session.commit()
        return project

    async def remove(self, project: Project, principal: Principal, *, force: bool) -> str:
        """Archive by default; `force` deletes permanently when nothing references it."""
        if not force:
            if project.status is ProjectStatus.archived:
                raise ValidationFailed("Project is already archived")
            changes = apply_changes(project, {"status": ProjectStatus.archived})
            await self._audit.add(
                user_id=principal.subject,
                action="ARCHIVED",
                entity_type="PROJECT",
                entity_id=project.id,
                project_id=project.id,
                changes=changes,
            )
            await self._session.commit()
            return "archived"

        dependents = await SpendingRepo(self._session).count_project_dependents(project.id)
        in_use = {k: v for k, v in dependents.items() if v}
        if in_use:
            raise Conflict(
                "Project has recorded activity and cannot be permanently deleted. Archive it instead.",
                details={"dependents": in_use},
            )
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED_PERMANENTLY",
            entity_type="PROJECT",
            entity_id=project.id,
            project_id=None,
            changes={"deleted": snapshot(project, _SNAPSHOT_FIELDS)},
        )
        await self._projects.delete(project)
        await self._session.commit()
        log.info("project_deleted", project_id=str(project.id))
        return "deleted"

    async def add_capital(
        self, project: Project, data: dict[str, Any], principal: Principal
    ) -> tuple[CapitalContribution, ProjectFinance]:
        contribution = await CapitalRepo(self._session).add(
            project_id=project.id,
            investor_name=data["investor_name"].strip(),
            amount=data["amount"],
            funding_type=data["funding_type"],
            contributed_on=data["contributed_on"],
            notes=data.get("notes") or "",
            created_by=principal.subject,
        )
        finance = await recalculate_project_finances(self._session, project.id)
        await self._audit.add(
            user_id=principal.subject,
            action="CAPITAL_ADDED",
            entity_type="PROJECT",
            entity_id=project.id,
            project_id=project.id,
            changes={
                "investor_name": contribution.investor_name,
                "amount": contribution.amount,
                "funding_type": contribution.funding_type.value,
            },
        )
        await self._session.commit()
        return contribution, finance

    async def finances(self, project: Project) -> ProjectFinance:
        finance = await recalculate_project_finances(self._session, project.id)
        await self._session.commit()
        return finance

    async def statistics(self, project: Project) -> dict[str, Any]:
        finance = await ProjectFinanceRepo(self._session).get_for_project(project.id)
        return finance_statistics(project, finance)


# --- Module Notes -----------------------------------------------------------
# Default phases are created in the same transaction as the project, so a project
# never exists without its phase set unless `auto_create_phases` is off.
