"""
buildtrack.services.equipment

Equipment assignments to projects and phases.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import Equipment, EquipmentScope, utcnow
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.equipment import EquipmentRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import equipment_cost
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import refresh_financials

log = get_logger(__name__)

_FIELDS = (
    "equipment_scope",
    "phase_id",
    "equipment_name",
    "equipment_type",
    "acquisition_type",
    "supplier_name",
    "daily_rate",
    "estimated_hours",
    "start_date",
    "end_date",
    "status",
    "notes",
)
_SNAPSHOT = ("equipment_name", "equipment_type", "equipment_scope", "daily_rate", "total_cost")


class EquipmentService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._equipment = EquipmentRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, equipment_id: Any) -> Equipment:
        item = await self._equipment.get(equipment_id)
        if item is None:
            raise NotFound("Equipment not found")
        return item

    async def _validate(self, values: dict[str, Any], project_id: Any) -> None:
        scope = values.get("equipment_scope")
        phase_id = values.get("phase_id")
        if scope is EquipmentScope.phase_specific:
            if phase_id is None:
                raise ValidationFailed("phase_id is required for phase-specific equipment")
            if await PhaseRepo(self._session).get_in_project(phase_id, project_id) is None:
                raise ValidationFailed("Phase does not belong to this project")
        elif phase_id is not None:
            raise ValidationFailed("Site-wide equipment cannot be assigned to a phase")
        end = values.get("end_date")
        if end is not None and end < values["start_date"]:
            raise ValidationFailed("end_date must be on or after start_date")

    async def create(self, data: dict[str, Any], principal: Principal) -> Equipment:
        if await ProjectRepo(self._session).get(data["project_id"]) is None:
            raise NotFound("Project not found")
        values = {k: data[k] for k in _FIELDS if data.get(k) is not None}
        values.setdefault("equipment_scope", EquipmentScope.phase_specific)
        await self._validate(values, data["project_id"])

        item = await self._equipment.create(
            project_id=data["project_id"],
            total_cost=equipment_cost(
                float(values.get("daily_rate") or 0), values["start_date"], values.get("end_date")
            ),
            created_by=principal.subject,
            **values,
        )
        await refresh_financials(self._session, project_id=item.project_id, phase_ids=[item.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="EQUIPMENT",
            entity_id=item.id,
            project_id=item.project_id,
            changes={"created": snapshot(item, _SNAPSHOT)},
        )
        await self._session.commit()
        log.info("equipment_created", equipment_id=str(item.id), total_cost=item.total_cost)
        return item

    async def update(self, item: Equipment, data: dict[str, Any], principal: Principal) -> Equipment:
        updates = {k: data[k] for k in _FIELDS if k in data and (data[k] is not None or k == "phase_id")}
        if not updates:
            raise ValidationFailed("No valid fields to update")

        merged = {k: getattr(item, k) for k in _FIELDS}
        merged.update(updates)
        if merged["equipment_scope"] is EquipmentScope.site_wide and "phase_id" not in updates:
            merged["phase_id"] = updates["phase_id"] = None
        await self._validate(merged, item.project_id)
        updates["total_cost"] = equipment_cost(
            float(merged["daily_rate"] or 0), merged["start_date"], merged["end_date"]
        )

        previous_phase = item.phase_id
        changes = apply_changes(item, updates)
        if changes:
            await refresh_financials(
                self._session, project_id=item.project_id, phase_ids=[previous_phase, item.phase_id]
            )
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="EQUIPMENT",
                entity_id=item.id,
                project_id=item.project_id,
                changes=changes,
            )
        await self._session.commit()
        return item

    async def delete(self, item: Equipment, principal: Principal) -> None:
        item.deleted_at = utcnow()
        await refresh_financials(self._session, project_id=item.project_id, phase_ids=[item.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="EQUIPMENT",
            entity_id=item.id,
            project_id=item.project_id,
            changes={"deleted": snapshot(item, _SNAPSHOT)},
        )
        await self._session.commit()


# --- Module Notes -----------------------------------------------------------
# Equipment cost counts as used spending as soon as it is recorded; there is no
# approval step for equipment.
