"""
buildtrack.services.subcontractors

Subcontract management.

Responsibilities:
- Validate contract dates and the payment schedule against the contract value.
- Track performance ratings and paid milestones (which feed phase spending).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import Subcontractor, SubcontractorStatus, utcnow
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.db.repositories.subcontractors import SubcontractorRepo
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import (
    PAYMENT_SCHEDULE_TOLERANCE,
    average_performance,
    payment_schedule_summary,
    payment_schedule_total,
)
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import refresh_financials

log = get_logger(__name__)

_FIELDS = (
    "phase_id",
    "subcontractor_name",
    "subcontractor_type",
    "contact_person",
    "phone",
    "email",
    "contract_value",
    "contract_type",
    "start_date",
    "end_date",
    "status",
    "payment_schedule",
    "performance",
    "notes",
)
_SNAPSHOT = ("subcontractor_name", "subcontractor_type", "contract_value", "status")


def validate_contract(values: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    end, start = values.get("end_date"), values.get("start_date")
    if end is not None and start is not None and end <= start:
        errors.append("end_date must be after start_date")
    contract_value = float(values.get("contract_value") or 0)
    scheduled = payment_schedule_total(values.get("payment_schedule") or [])
    if scheduled > contract_value * PAYMENT_SCHEDULE_TOLERANCE:
        errors.append(
            f"Payment schedule total ({scheduled:,.2f}) exceeds contract value "
            f"({contract_value:,.2f}) by more than 10%"
        )
    return errors


def subcontractor_summary(sub: Subcontractor) -> dict[str, Any]:
    return {
        "payment_summary": payment_schedule_summary(sub.contract_value, sub.payment_schedule or []),
        "average_performance": average_performance(sub.performance),
    }


class SubcontractorService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._subs = SubcontractorRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, subcontractor_id: Any) -> Subcontractor:
        sub = await self._subs.get(subcontractor_id)
        if sub is None:
            raise NotFound("Subcontractor not found")
        return sub

    async def _check_phase(self, phase_id: Any, project_id: Any) -> None:
        if await PhaseRepo(self._session).get_in_project(phase_id, project_id) is None:
            raise ValidationFailed("Phase does not belong to this project")

    async def create(self, data: dict[str, Any], principal: Principal) -> Subcontractor:
        if await ProjectRepo(self._session).get(data["project_id"]) is None:
            raise NotFound("Project not found")
        await self._check_phase(data["phase_id"], data["project_id"])
        values = {k: data[k] for k in _FIELDS if data.get(k) is not None}
        errors = validate_contract(values)
        if errors:
            raise ValidationFailed.from_errors(errors)

        values["subcontractor_name"] = values["subcontractor_name"].strip()
        values.setdefault("status", SubcontractorStatus.pending)
        sub = await self._subs.create(
            project_id=data["project_id"], created_by=principal.subject, **values
        )
        await refresh_financials(self._session, project_id=sub.project_id, phase_ids=[sub.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="SUBCONTRACTOR",
            entity_id=sub.id,
            project_id=sub.project_id,
            changes={"created": snapshot(sub, _SNAPSHOT)},
        )
        await self._session.commit()
        log.info("subcontractor_created", subcontractor_id=str(sub.id), contract_value=sub.contract_value)
        return sub

    async def update(
        self, sub: Subcontractor, data: dict[str, Any], principal: Principal
    ) -> Subcontractor:
        updates = {k: data[k] for k in _FIELDS if k in data and data[k] is not None}
        if not updates:
            raise ValidationFailed("No valid fields to update")
        if "phase_id" in updates:
            await self._check_phase(updates["phase_id"], sub.project_id)
        if "performance" in updates:
            merged_performance = dict(sub.performance or {})
            merged_performance.update(updates["performance"])
            updates["performance"] = merged_performance

        merged = {k: getattr(sub, k) for k in _FIELDS}
        merged.update(updates)
        errors = validate_contract(merged)
        if errors:
            raise ValidationFailed.from_errors(errors)

        previous_phase = sub.phase_id
        changes = apply_changes(sub, updates)
        if changes:
            await refresh_financials(
                self._session, project_id=sub.project_id, phase_ids=[previous_phase, sub.phase_id]
            )
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="SUBCONTRACTOR",
                entity_id=sub.id,
                project_id=sub.project_id,
                changes=changes,
            )
        await self._session.commit()
        return sub

    async def delete(self, sub: Subcontractor, principal: Principal) -> None:
        sub.deleted_at = utcnow()
        await refresh_financials(self._session, project_id=sub.project_id, phase_ids=[sub.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="SUBCONTRACTOR",
            entity_id=sub.id,
            project_id=sub.project_id,
            changes={"deleted": snapshot(sub, _SNAPSHOT)},
        )
        await self._session.commit()


# --- Module Notes -----------------------------------------------------------
# Only paid schedule entries feed phase spending; the unpaid contract value of
# pending/active subcontracts is reported as committed cost.
