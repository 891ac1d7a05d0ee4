"""
buildtrack.services.labour

Workers and daily labour entries.

Responsibilities:
- Maintain the worker register (unique employee ids, date sanity, soft delete).
- Record labour entries: hours from clock times or totals, worker defaults,
  cost calculation and warnings.
- Approve/reject entries and keep phase/project spending current.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import (
    LabourEntry,
    LabourEntryStatus,
    Phase,
    Worker,
    WorkerStatus,
    WorkerType,
    utcnow,
)
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.labour_entries import LabourEntryRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.db.repositories.workers import WorkerRepo
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import (
    DEFAULT_OVERTIME_MULTIPLIER,
    calculate_labour_cost,
    hours_between,
    validate_labour_hours,
)
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import check_phase_labour_budget, refresh_financials

log = get_logger(__name__)

_WORKER_FIELDS = (
    "worker_name",
    "worker_type",
    "employment_type",
    "profession",
    "phone",
    "email",
    "default_hourly_rate",
    "default_daily_rate",
    "overtime_multiplier",
    "skill_types",
    "status",
    "hire_date",
    "termination_date",
    "notes",
)
_ENTRY_SNAPSHOT = ("worker_name", "entry_date", "total_hours", "hourly_rate", "total_cost", "status")
_COST_INPUTS = (
    "clock_in",
    "clock_out",
    "break_duration",
    "total_hours",
    "overtime_hours",
    "hourly_rate",
    "daily_rate",
    "overtime_multiplier",
)
# Statuses callers may set directly; approval decisions go through approve/reject.
OPEN_ENTRY_STATUSES = (LabourEntryStatus.draft, LabourEntryStatus.submitted)


def worker_warnings(worker_type: Any, profession: str | None) -> list[str]:
    if worker_type == WorkerType.professional and not (profession or "").strip():
        return ["Professional workers should have a profession specified"]
    return []


def _requested_status(value: Any) -> LabourEntryStatus:
    status = LabourEntryStatus(value) if value else LabourEntryStatus.draft
    if status not in OPEN_ENTRY_STATUSES:
        raise ValidationFailed(
            f"Labour entries cannot be set to {status.value} directly. "
            "Use the approve or reject actions."
        )
    return status


def _check_worker_dates(hire_date: Any, termination_date: Any) -> None:
    if hire_date and termination_date and termination_date <= hire_date:
        raise ValidationFailed("termination_date must be after hire_date")


class WorkerService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._workers = WorkerRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, worker_id: Any) -> Worker:
        worker = await self._workers.get(worker_id)
        if worker is None:
            raise NotFound("Worker not found")
        return worker

    async def create(self, data: dict[str, Any], principal: Principal) -> tuple[Worker, list[str]]:
        employee_id = data["employee_id"].strip()
        if await self._workers.get_by_employee_id(employee_id) is not None:
            raise ValidationFailed(f"Worker with employee ID {employee_id} already exists")
        _check_worker_dates(data.get("hire_date"), data.get("termination_date"))

        fields = {k: data[k] for k in _WORKER_FIELDS if data.get(k) is not None}
        fields["worker_name"] = fields["worker_name"].strip()
        worker = await self._workers.create(
            employee_id=employee_id,
            created_by=principal.subject,
            **fields,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="WORKER",
            entity_id=worker.id,
            changes={"created": snapshot(worker, ("employee_id", "worker_name", "worker_type"))},
        )
        await self._session.commit()
        log.info("worker_created", worker_id=str(worker.id), employee_id=employee_id)
        return worker, worker_warnings(worker.worker_type, worker.profession)

    async def update(
        self, worker: Worker, data: dict[str, Any], principal: Principal
    ) -> tuple[Worker, list[str]]:
        updates = {k: data[k] for k in _WORKER_FIELDS if k in data and data[k] is not None}
        if data.get("employee_id") and data["employee_id"].strip() != worker.employee_id:
            employee_id = data["employee_id"].strip()
            if await self._workers.get_by_employee_id(employee_id) is not None:
                raise ValidationFailed(f"Worker with employee ID {employee_id} already exists")
            updates["employee_id"] = employee_id
        if not updates:
            raise ValidationFailed("No valid fields to update")
        _check_worker_dates(
            updates.get("hire_date", worker.hire_date),
            updates.get("termination_date", worker.termination_date),
        )

        changes = apply_changes(worker, updates)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="WORKER",
                entity_id=worker.id,
                changes=changes,
            )
        await self._session.commit()
        return worker, worker_warnings(worker.worker_type, worker.profession)

    async def delete(self, worker: Worker, principal: Principal) -> None:
        worker.deleted_at = utcnow()
        worker.status = WorkerStatus.inactive
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="WORKER",
            entity_id=worker.id,
        )
        await self._session.commit()


class LabourEntryService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._entries = LabourEntryRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, entry_id: Any) -> LabourEntry:
        entry = await self._entries.get(entry_id)
        if entry is None:
            raise NotFound("Labour entry not found")
        return entry

    async def _check_labour_budget(self, phase: Phase, total_cost: float) -> None:
        budget = await check_phase_labour_budget(self._session, phase, total_cost)
        if not budget.within_budget:
            raise ValidationFailed(
                f"Budget validation failed: {budget.warnings[0]}",
                details={
                    "labour_budget": {
                        "available": budget.available,
                        "required": budget.required,
                        "budget": budget.budget_total,
                    }
                },
            )

    @staticmethod
    def _costed(values: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
        """Derive hours and cost columns from the entry's inputs."""
        clock_in, clock_out = values.get("clock_in"), values.get("clock_out")
        if clock_in and clock_out:
            if clock_out <= clock_in:
                raise ValidationFailed("clock_out must be after clock_in")
            total_hours = hours_between(clock_in, clock_out, values.get("break_duration") or 0)
        else:
            total_hours = float(values.get("total_hours") or 0)

        hourly_rate = values.get("hourly_rate")
        errors, warnings = validate_labour_hours(
            total_hours=total_hours,
            hourly_rate=hourly_rate,
            overtime_hours=values.get("overtime_hours"),
        )
        if errors:
            raise ValidationFailed.from_errors(errors)

        cost = calculate_labour_cost(
            total_hours=total_hours,
            hourly_rate=hourly_rate,
            overtime_hours=values.get("overtime_hours"),
            daily_rate=values.get("daily_rate"),
            overtime_multiplier=values.get("overtime_multiplier") or DEFAULT_OVERTIME_MULTIPLIER,
        )
        return cost.as_dict(), warnings

    async def create(
        self, data: dict[str, Any], principal: Principal
    ) -> tuple[LabourEntry, list[str]]:
        if await ProjectRepo(self._session).get(data["project_id"]) is None:
            raise NotFound("Project not found")
        phase = None
        if data.get("phase_id") is not None:
            phase = await PhaseRepo(self._session).get_in_project(data["phase_id"], data["project_id"])
            if phase is None:
                raise ValidationFailed("Phase does not belong to this project")
        status = _requested_status(data.get("status"))

        values = dict(data)
        if data.get("worker_id") is not None:
            worker = await WorkerRepo(self._session).get(data["worker_id"])
            if worker is None:
                raise NotFound("Worker not found")
            values["worker_name"] = values.get("worker_name") or worker.worker_name
            values["worker_type"] = values.get("worker_type") or worker.worker_type
            if values.get("hourly_rate") is None:
                values["hourly_rate"] = worker.default_hourly_rate
            if values.get("daily_rate") is None:
                values["daily_rate"] = worker.default_daily_rate
            if values.get("overtime_multiplier") is None:
                values["overtime_multiplier"] = worker.overtime_multiplier
        if not values.get("worker_name"):
            raise ValidationFailed("worker_name is required when no worker_id is given")
        values["worker_type"] = values.get("worker_type") or WorkerType.internal
        values["overtime_multiplier"] = values.get("overtime_multiplier") or DEFAULT_OVERTIME_MULTIPLIER

        cost, warnings = self._costed(values)
        if phase is not None:
            await self._check_labour_budget(phase, cost["total_cost"])
        entry = await self._entries.create(
            project_id=values["project_id"],
            phase_id=values.get("phase_id"),
            worker_id=values.get("worker_id"),
            worker_name=values["worker_name"].strip(),
            worker_type=values["worker_type"],
            skill_type=values.get("skill_type") or "general_worker",
            entry_date=values["entry_date"],
            clock_in=values.get("clock_in"),
            clock_out=values.get("clock_out"),
            break_duration=values.get("break_duration") or 0,
            hourly_rate=float(values["hourly_rate"]),
            daily_rate=values.get("daily_rate"),
            overtime_multiplier=values["overtime_multiplier"],
            task_description=values.get("task_description") or "",
            quality_rating=values.get("quality_rating"),
            productivity_rating=values.get("productivity_rating"),
            status=status,
            notes=values.get("notes") or "",
            created_by=principal.subject,
            **cost,
        )
        await refresh_financials(self._session, project_id=entry.project_id, phase_ids=[entry.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="LABOUR_ENTRY",
            entity_id=entry.id,
            project_id=entry.project_id,
            changes={"created": snapshot(entry, _ENTRY_SNAPSHOT)},
        )
        await self._session.commit()
        log.info("labour_entry_created", entry_id=str(entry.id), total_cost=entry.total_cost)
        return entry, warnings

    async def update(
        self, entry: LabourEntry, data: dict[str, Any], principal: Principal
    ) -> tuple[LabourEntry, list[str]]:
        if entry.status not in OPEN_ENTRY_STATUSES:
            raise ValidationFailed(
                f"Cannot edit labour entry with status {entry.status.value}. "
                "Only draft or submitted entries can be edited."
            )

        updates = {
            k: v
            for k, v in data.items()
            if v is not None
            and k
            in (
                "phase_id",
                "skill_type",
                "entry_date",
                "task_description",
                "quality_rating",
                "productivity_rating",
                "notes",
                "status",
                *_COST_INPUTS,
            )
        }
        if not updates:
            raise ValidationFailed("No valid fields to update")
        if "status" in updates:
            updates["status"] = _requested_status(updates["status"])
        phase_id = updates.get("phase_id", entry.phase_id)
        phase = None
        if phase_id is not None:
            phase = await PhaseRepo(self._session).get_in_project(phase_id, entry.project_id)
            if phase is None:
                raise ValidationFailed("Phase does not belong to this project")

        warnings: list[str] = []
        if any(k in updates for k in _COST_INPUTS):
            current = {k: getattr(entry, k) for k in _COST_INPUTS}
            # Stored overtime is derived; only an explicit value overrides the split.
            current["overtime_hours"] = None
            if "total_hours" in updates and "clock_in" not in updates:
                current["clock_in"] = current["clock_out"] = None
            current.update({k: updates[k] for k in _COST_INPUTS if k in updates})
            cost, warnings = self._costed(current)
            if phase is not None and abs(cost["total_cost"] - entry.total_cost) > 0.01:
                await self._check_labour_budget(phase, cost["total_cost"])
            updates.pop("overtime_hours", None)
            updates.pop("total_hours", None)
            updates.update(cost)

        previous_phase = entry.phase_id
        changes = apply_changes(entry, updates)
        if changes:
            await refresh_financials(
                self._session, project_id=entry.project_id, phase_ids=[previous_phase, entry.phase_id]
            )
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="LABOUR_ENTRY",
                entity_id=entry.id,
                project_id=entry.project_id,
                changes=changes,
            )
        await self._session.commit()
        return entry, warnings

    async def delete(self, entry: LabourEntry, principal: Principal) -> None:
        if entry.status is not LabourEntryStatus.draft:
            raise ValidationFailed(
                f"Cannot delete labour entry with status {entry.status.value}. "
                "Only draft entries can be deleted."
            )
        entry.deleted_at = utcnow()
        await refresh_financials(self._session, project_id=entry.project_id, phase_ids=[entry.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="LABOUR_ENTRY",
            entity_id=entry.id,
            project_id=entry.project_id,
            changes={"deleted": snapshot(entry, _ENTRY_SNAPSHOT)},
        )
        await self._session.commit()

    async def approve(self, entry_id: Any, principal: Principal, *, notes: str = "") -> LabourEntry:
        entry = await self._entries.get(entry_id, for_update=True)
        if entry is None:
            raise NotFound("Labour entry not found")
        if entry.status not in (LabourEntryStatus.draft, LabourEntryStatus.submitted):
            raise ValidationFailed(f"Cannot approve labour entry with status {entry.status.value}")
        await self._decide(entry, principal, LabourEntryStatus.approved, notes)
        entry.rejection_reason = None
        await self._session.commit()
        log.info("labour_entry_approved", entry_id=str(entry.id), total_cost=entry.total_cost)
        return entry

    async def reject(self, entry_id: Any, principal: Principal, *, reason: str) -> LabourEntry:
        if not (reason or "").strip():
            raise ValidationFailed("Rejection reason is required")
        entry = await self._entries.get(entry_id, for_update=True)
        if entry is None:
            raise NotFound("Labour entry not found")
        if entry.status not in (LabourEntryStatus.draft, LabourEntryStatus.submitted):
            raise ValidationFailed(f"Cannot reject labour entry with status {entry.status.value}")
        await self._decide(entry, principal, LabourEntryStatus.rejected, reason.strip())
        entry.rejection_reason = reason.strip()
        await self._session.commit()
        log.info("labour_entry_rejected", entry_id=str(entry.id))
        return entry

    async def _decide(
        self, entry: LabourEntry, principal: Principal, status: LabourEntryStatus, notes: str
    ) -> None:
        previous = entry.status
        entry.status = status
        entry.approved_by = principal.subject
        entry.approved_at = utcnow()
        action = "APPROVED" if status is LabourEntryStatus.approved else "REJECTED"
        await ApprovalRepo(self._session).add(
            related_id=entry.id,
            related_model="LabourEntry",
            action=action,
            previous_status=previous.value,
            new_status=status.value,
            approved_by=principal.subject,
            approver_name=principal.display_name,
            notes=notes,
        )
        await refresh_financials(self._session, project_id=entry.project_id, phase_ids=[entry.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action=action,
            entity_type="LABOUR_ENTRY",
            entity_id=entry.id,
            project_id=entry.project_id,
            changes={"status": {"old_value": previous.value, "new_value": status.value}},
        )


# --- Module Notes -----------------------------------------------------------
# Entry cost is recomputed on every hours/rate edit. Only approved entries count
# toward phase spending, so approve/reject are the points that trigger recalculation.
