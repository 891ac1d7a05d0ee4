"""
buildtrack.services.phase_tracking

Milestones and quality checkpoints attached to a phase.

Responsibilities:
- Create/update/delete milestones; derive each milestone's status from its dates
  and sign-off.
- Create/update/delete quality checkpoints; stamp the inspector when a checkpoint
  is decided (passed, failed or waived).
- Audit every change against the owning project.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import (
    CheckpointStatus,
    Phase,
    PhaseMilestone,
    QualityCheckpoint,
    utcnow,
)
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.phase_tracking import MilestoneRepo, QualityCheckpointRepo
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import milestone_status
from buildtrack.services.changes import apply_changes, snapshot

log = get_logger(__name__)

DECIDED_CHECKPOINT_STATUSES = (
    CheckpointStatus.passed,
    CheckpointStatus.failed,
    CheckpointStatus.waived,
)
_MILESTONE_FIELDS = (
    "name",
    "description",
    "target_date",
    "actual_date",
    "completion_criteria",
    "sign_off_required",
    "sign_off_by",
    "sign_off_date",
    "sign_off_notes",
)
_CHECKPOINT_FIELDS = (
    "name",
    "description",
    "required",
    "status",
    "inspected_by",
    "inspected_at",
    "notes",
    "photos",
)


def status_of(milestone: PhaseMilestone, today: date | None = None) -> str:
    return milestone_status(
        target_date=milestone.target_date,
        actual_date=milestone.actual_date,
        sign_off_required=milestone.sign_off_required,
        sign_off_date=milestone.sign_off_date,
        today=today,
    ).value


def _clean(data: dict[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    values = {k: data[k] for k in fields if k in data}
    for key in ("name", "description", "notes", "sign_off_notes"):
        if isinstance(values.get(key), str):
            values[key] = values[key].strip()
    if "name" in values and not values["name"]:
        raise ValidationFailed("name is required")
    return values


class MilestoneService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._milestones = MilestoneRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, phase: Phase, milestone_id: Any) -> PhaseMilestone:
        milestone = await self._milestones.get_in_phase(milestone_id, phase.id)
        if milestone is None:
            raise NotFound("Milestone not found")
        return milestone

    async def for_phase(self, phase: Phase) -> list[PhaseMilestone]:
        return await self._milestones.list_for_phase(phase.id)

    async def create(
        self, phase: Phase, data: dict[str, Any], principal: Principal
    ) -> PhaseMilestone:
        values = _clean(data, _MILESTONE_FIELDS)
        values["completion_criteria"] = values.get("completion_criteria") or []
        values["sign_off_notes"] = values.get("sign_off_notes") or ""
        values["description"] = values.get("description") or ""
        milestone = await self._milestones.create(
            phase_id=phase.id,
            project_id=phase.project_id,
            created_by=principal.subject,
            **values,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="MILESTONE",
            entity_id=milestone.id,
            project_id=phase.project_id,
            changes={"created": snapshot(milestone, _MILESTONE_FIELDS)},
        )
        await self._session.commit()
        log.info("milestone_created", milestone_id=str(milestone.id), phase_id=str(phase.id))
        return milestone

    async def update(
        self, milestone: PhaseMilestone, data: dict[str, Any], principal: Principal
    ) -> PhaseMilestone:
        updates = _clean(data, _MILESTONE_FIELDS)
        for key in ("description", "sign_off_notes"):
            if key in updates and updates[key] is None:
                updates[key] = ""
        if updates.get("completion_criteria") is None:
            updates.pop("completion_criteria", None)
        if updates.get("sign_off_required") is None:
            updates.pop("sign_off_required", None)
        if not updates:
            raise ValidationFailed("No valid fields to update")

        changes = apply_changes(milestone, updates)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="MILESTONE",
                entity_id=milestone.id,
                project_id=milestone.project_id,
                changes=changes,
            )
        await self._session.commit()
        return milestone

    async def delete(self, milestone: PhaseMilestone, principal: Principal) -> None:
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="MILESTONE",
            entity_id=milestone.id,
            project_id=milestone.project_id,
            changes={"deleted": snapshot(milestone, _MILESTONE_FIELDS)},
        )
        await self._milestones.delete(milestone)
        await self._session.commit()


class QualityCheckpointService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._checkpoints = QualityCheckpointRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, phase: Phase, checkpoint_id: Any) -> QualityCheckpoint:
        checkpoint = await self._checkpoints.get_in_phase(checkpoint_id, phase.id)
        if checkpoint is None:
            raise NotFound("Quality checkpoint not found")
        return checkpoint

    async def for_phase(
        self, phase: Phase, *, status: CheckpointStatus | None = None
    ) -> list[QualityCheckpoint]:
        return await self._checkpoints.list_for_phase(phase.id, status=status)

    @staticmethod
    def _stamp_inspection(values: dict[str, Any], principal: Principal) -> None:
        if values.get("status") in DECIDED_CHECKPOINT_STATUSES:
            values["inspected_by"] = values.get("inspected_by") or principal.subject
            values["inspected_at"] = values.get("inspected_at") or utcnow()

    async def create(
        self, phase: Phase, data: dict[str, Any], principal: Principal
    ) -> QualityCheckpoint:
        values = _clean(data, _CHECKPOINT_FIELDS)
        values["status"] = values.get("status") or CheckpointStatus.pending
        values["required"] = True if values.get("required") is None else values["required"]
        values["photos"] = values.get("photos") or []
        values["description"] = values.get("description") or ""
        values["notes"] = values.get("notes") or ""
        self._stamp_inspection(values, principal)

        checkpoint = await self._checkpoints.create(
            phase_id=phase.id,
            project_id=phase.project_id,
            created_by=principal.subject,
            **values,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="QUALITY_CHECKPOINT",
            entity_id=checkpoint.id,
            project_id=phase.project_id,
            changes={"created": snapshot(checkpoint, _CHECKPOINT_FIELDS)},
        )
        await self._session.commit()
        log.info("quality_checkpoint_created", checkpoint_id=str(checkpoint.id))
        return checkpoint

    async def update(
        self, checkpoint: QualityCheckpoint, data: dict[str, Any], principal: Principal
    ) -> QualityCheckpoint:
        updates = _clean(data, _CHECKPOINT_FIELDS)
        for key in ("status", "required", "photos"):
            if key in updates and updates[key] is None:
                updates.pop(key)
        for key in ("description", "notes"):
            if key in updates and updates[key] is None:
                updates[key] = ""
        if not updates:
            raise ValidationFailed("No valid fields to update")
        if "status" in updates:
            stamped = {
                "status": updates["status"],
                "inspected_by": updates.get("inspected_by", checkpoint.inspected_by),
                "inspected_at": updates.get("inspected_at", checkpoint.inspected_at),
            }
            self._stamp_inspection(stamped, principal)
            updates.update(stamped)

        changes = apply_changes(checkpoint, updates)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="QUALITY_CHECKPOINT",
                entity_id=checkpoint.id,
                project_id=checkpoint.project_id,
                changes=changes,
            )
        await self._session.commit()
        if "status" in changes:
            log.info(
                "quality_checkpoint_decided",
                checkpoint_id=str(checkpoint.id),
                status=checkpoint.status.value,
            )
        return checkpoint

    async def delete(self, checkpoint: QualityCheckpoint, principal: Principal) -> None:
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="QUALITY_CHECKPOINT",
            entity_id=checkpoint.id,
            project_id=checkpoint.project_id,
            changes={"deleted": snapshot(checkpoint, _CHECKPOINT_FIELDS)},
        )
        await self._checkpoints.delete(checkpoint)
        await self._session.commit()


# --- Module Notes -----------------------------------------------------------
# Milestone status is derived on read (it depends on today's date), so it is never
# stored.
