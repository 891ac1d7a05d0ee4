"""
buildtrack.services.phases

Phase lifecycle service.

Responsibilities:
- Create phases (including a project's default set) with unique code/sequence.
- Validate dependencies: same project, no self reference, no cycles.
- Gate status transitions (a phase starts only after its dependencies complete).
- Merge budget allocation edits and keep derived spending current.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import Phase, PhaseStatus, PhaseType, Project, utcnow
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.expenses import ExpenseRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.spending import SpendingRepo
from buildtrack.errors import ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import normalize_budget
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import recalculate_phase_spending

log = get_logger(__name__)

DEFAULT_PHASES: tuple[dict[str, Any], ...] = (
    {
        "phase_name": "Basement/Substructure",
        "phase_type": PhaseType.construction,
        "description": "Foundation, basement, and substructure work",
    },
    {
        "phase_name": "Superstructure",
        "phase_type": PhaseType.construction,
        "description": "Main structure construction",
    },
    {
        "phase_name": "Finishing Works",
        "phase_type": PhaseType.finishing,
        "description": "Electrical, plumbing, joinery, paintwork, tiling",
    },
    {
        "phase_name": "Final Systems",
        "phase_type": PhaseType.final,
        "description": "Lift installation, testing, commissioning, handover",
    },
)

_AUDIT_FIELDS = ("phase_name", "phase_code", "phase_type", "sequence", "status", "budget_allocation")


def default_phase_code(sequence: int) -> str:
    return f"PHASE-{sequence:02d}"


def creates_cycle(
    phase_id: str, depends_on: list[str], graph: Mapping[str, list[str]]
) -> bool:
    """
    True when any of `depends_on` can reach `phase_id` through `graph`
    (phase id -> ids it depends on), i.e. adding the edges would close a loop.
    """

    for start in depends_on:
        stack = [start]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == phase_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(graph.get(current, []))
    return False


class PhaseService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._phases = PhaseRepo(session)
        self._audit = AuditRepo(session)

    async def create_defaults(self, project: Project, principal: Principal) -> list[Phase]:
        created = []
        for sequence, template in enumerate(DEFAULT_PHASES, start=1):
            created.append(
                await self._phases.create(
                    project_id=project.id,
                    phase_code=default_phase_code(sequence),
                    sequence=sequence,
                    budget_allocation=normalize_budget(None),
                    actual_spending={},
                    financial_states={},
                    depends_on=[],
                    created_by=principal.subject,
                    **template,
                )
            )
        return created

    async def create(self, *, project: Project, data: dict[str, Any], principal: Principal) -> Phase:
        sequence = data.get("sequence") or await self._phases.next_sequence(project.id)
        phase_code = (data.get("phase_code") or "").strip() or default_phase_code(sequence)

        errors: list[str] = []
        if await self._phases.code_taken(project.id, phase_code):
            errors.append(f"Phase code {phase_code} already exists in this project")
        if await self._phases.sequence_taken(project.id, sequence):
            errors.append(f"Sequence {sequence} is already used in this project")
        depends_on = [str(d) for d in data.get("depends_on") or []]
        errors.extend(await self.validate_dependencies(None, depends_on, project.id))
        if errors:
            raise ValidationFailed.from_errors(errors)

        phase = await self._phases.create(
            project_id=project.id,
            phase_name=data["phase_name"].strip(),
            phase_code=phase_code,
            phase_type=data.get("phase_type") or PhaseType.construction,
            sequence=sequence,
            description=data.get("description") or "",
            status=PhaseStatus.not_started,
            start_date=data.get("start_date"),
            planned_end_date=data.get("planned_end_date"),
            budget_allocation=normalize_budget(data.get("budget_allocation")),
            actual_spending={},
            financial_states={},
            depends_on=depends_on,
            created_by=principal.subject,
        )
        await recalculate_phase_spending(self._session, phase)
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="PHASE",
            entity_id=phase.id,
            project_id=project.id,
            changes={"created": snapshot(phase, _AUDIT_FIELDS)},
        )
        await self._session.commit()
        log.info("phase_created", phase_id=str(phase.id), project_id=str(project.id))
        return phase

    async def validate_dependencies(
        self, phase_id: uuid.UUID | None, depends_on: list[str], project_id: uuid.UUID
    ) -> list[str]:
        if not depends_on:
            return []
        errors: list[str] = []
        if len(set(depends_on)) != len(depends_on):
            errors.append("Duplicate phase dependencies are not allowed")

        siblings = {str(p.id): p for p in await self._phases.list_for_project(project_id)}
        for dep in depends_on:
            if phase_id is not None and dep == str(phase_id):
                errors.append("Phase cannot depend on itself")
            elif dep not in siblings:
                errors.append(f"Dependency phase {dep} not found or does not belong to this project")

        if phase_id is not None and not errors:
            graph = {pid: list(p.depends_on or []) for pid, p in siblings.items()}
            if creates_cycle(str(phase_id), depends_on, graph):
                errors.append(
                    "Circular dependency detected: This phase would create a dependency cycle"
                )
        return errors

    async def can_start(self, phase: Phase) -> dict[str, Any]:
        if not phase.depends_on:
            return {"can_start": True, "reason": "No dependencies", "blocking_phases": []}

        deps = await self._phases.by_ids(uuid.UUID(d) for d in phase.depends_on)
        blocking = [
            {
                "phase_id": str(dep.id),
                "phase_name": dep.phase_name,
                "phase_code": dep.phase_code,
                "status": dep.status.value,
                "completion_percentage": dep.completion_percentage,
            }
            for dep in deps.values()
            if dep.status is not PhaseStatus.completed
        ]
        if blocking:
            names = ", ".join(b["phase_name"] for b in blocking)
            return {
                "can_start": False,
                "reason": (
                    f"Cannot start: {len(blocking)} prerequisite phase(s) not completed: {names}"
                ),
                "blocking_phases": blocking,
            }
        return {"can_start": True, "reason": "All dependencies completed", "blocking_phases": []}

    async def update(self, phase: Phase, data: dict[str, Any], principal: Principal) -> Phase:
        errors: list[str] = []
        updates: dict[str, Any] = {}

        for key in ("phase_name", "description", "phase_type", "start_date", "planned_end_date"):
            if key in data and data[key] is not None:
                updates[key] = data[key].strip() if isinstance(data[key], str) else data[key]

        if data.get("phase_code") and data["phase_code"] != phase.phase_code:
            if await self._phases.code_taken(phase.project_id, data["phase_code"], exclude_id=phase.id):
                errors.append(f"Phase code {data['phase_code']} already exists in this project")
            updates["phase_code"] = data["phase_code"]

        if data.get("sequence") is not None and data["sequence"] != phase.sequence:
            if await self._phases.sequence_taken(phase.project_id, data["sequence"], exclude_id=phase.id):
                errors.append(f"Sequence {data['sequence']} is already used in this project")
            updates["sequence"] = data["sequence"]

        if "depends_on" in data and data["depends_on"] is not None:
            depends_on = [str(d) for d in data["depends_on"]]
            errors.extend(await self.validate_dependencies(phase.id, depends_on, phase.project_id))
            updates["depends_on"] = depends_on

        if data.get("completion_percentage") is not None:
            updates["completion_percentage"] = float(data["completion_percentage"])

        if data.get("budget_allocation") is not None:
            merged = dict(phase.budget_allocation or {})
            merged.update({k: v for k, v in data["budget_allocation"].items() if v is not None})
            updates["budget_allocation"] = normalize_budget(merged)

        new_status = data.get("status")
        if new_status is not None and new_status != phase.status:
            if new_status is PhaseStatus.in_progress:
                gate = await self.can_start(phase)
                if not gate["can_start"]:
                    raise ValidationFailed(gate["reason"], details={"blocking_phases": gate["blocking_phases"]})
                if phase.start_date is None and "start_date" not in updates:
                    updates["start_date"] = date.today()
            if new_status is PhaseStatus.completed:
                updates["actual_end_date"] = date.today()
                updates["completion_percentage"] = 100.0
            updates["status"] = new_status

        if errors:
            raise ValidationFailed.from_errors(errors)
        if not updates:
            raise ValidationFailed("No valid fields to update")

        changes = apply_changes(phase, updates)
        if "budget_allocation" in changes:
            await recalculate_phase_spending(self._session, phase)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="PHASE",
                entity_id=phase.id,
                project_id=phase.project_id,
                changes=changes,
            )
        await self._session.commit()
        return phase

    async def delete(self, phase: Phase, principal: Principal) -> None:
        expenses = await ExpenseRepo(self._session).count_active_for_phase(phase.id)
        labour = await SpendingRepo(self._session).count_active_labour_for_phase(phase.id)
        if expenses or labour:
            raise ValidationFailed(
                f"Cannot delete phase with {expenses} expense(s) and {labour} labour "
                "entry(ies). Reassign or archive them first."
            )

        phase.deleted_at = utcnow()
        # Drop the deleted phase from sibling dependency lists.
        for dependent in await self._phases.dependents_of(phase):
            dependent.depends_on = [d for d in dependent.depends_on if d != str(phase.id)]

        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="PHASE",
            entity_id=phase.id,
            project_id=phase.project_id,
            changes={"deleted": snapshot(phase, _AUDIT_FIELDS)},
        )
        await self._session.commit()


# --- Module Notes -----------------------------------------------------------
# Phase deletes are soft; `PhaseRepo` hides deleted phases from every listing,
# including dependency lookups.
