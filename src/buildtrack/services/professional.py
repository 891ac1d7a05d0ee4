"""
buildtrack.services.professional

Professional service assignments (architects, engineers) and their activities.

Responsibilities:
- Assign professionals to projects with generated codes.
- Record activities singly or in bulk, keeping the assignment's counters current.
- Approve/reject activities; approved fees feed phase and project spending.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal, Role
from buildtrack.db.models import (
    ActivityStatus,
    PaymentStatus,
    ProfessionalActivity,
    ProfessionalService,
    ProfessionalType,
    Project,
    utcnow,
)
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.professional import (
    ProfessionalActivityRepo,
    ProfessionalServiceRepo,
    type_prefix,
)
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.errors import NotFound, PermissionDenied, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import money
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import refresh_financials

log = get_logger(__name__)

ACTIVITY_TYPES: dict[ProfessionalType, tuple[str, ...]] = {
    ProfessionalType.architect: ("site_visit", "design_revision", "client_meeting", "document_upload"),
    ProfessionalType.engineer: (
        "site_visit",
        "inspection",
        "quality_check",
        "client_meeting",
        "document_upload",
    ),
}

# Activity type -> assignment counter it increments.
ACTIVITY_COUNTERS = {
    "site_visit": "total_site_visits",
    "inspection": "total_inspections",
    "design_revision": "total_design_revisions",
}

DECIDABLE_STATUSES = (ActivityStatus.draft, ActivityStatus.pending_approval)

_SERVICE_FIELDS = (
    "phase_id",
    "professional_name",
    "firm_name",
    "contract_type",
    "contract_value",
    "contract_start_date",
    "contract_end_date",
    "status",
    "notes",
)
_ACTIVITY_FIELDS = (
    "phase_id",
    "activity_type",
    "activity_date",
    "visit_purpose",
    "inspection_type",
    "compliance_status",
    "notes",
    "issues_found",
    "material_tests",
    "documents",
    "fees_charged",
    "expenses_incurred",
    "payment_status",
)
_ACTIVITY_SNAPSHOT = ("activity_code", "activity_type", "activity_date", "status", "fees_charged")


def activity_code(professional_type: ProfessionalType, sequence: int) -> str:
    return f"ACT-{type_prefix(professional_type)}-{sequence:06d}"


def activity_errors(data: dict[str, Any], professional_type: ProfessionalType) -> list[str]:
    errors: list[str] = []
    allowed = ACTIVITY_TYPES[professional_type]
    activity_type = data.get("activity_type")
    if activity_type not in allowed:
        errors.append(
            f"Activity type '{activity_type}' is not valid for {professional_type.value}. "
            f"Allowed: {', '.join(allowed)}"
        )
    if data.get("activity_date") is None:
        errors.append("activity_date is required")
    for key in ("fees_charged", "expenses_incurred"):
        if data.get(key) is not None and data[key] < 0:
            errors.append(f"{key} must be >= 0")
    return errors


def activity_amount(activity: ProfessionalActivity) -> float:
    return money((activity.fees_charged or 0) + (activity.expenses_incurred or 0))


def _bump_counters(
    service: ProfessionalService, activity_type: str, delta: int, activity_date: Any = None
) -> None:
    service.total_activities = max(0, service.total_activities + delta)
    counter = ACTIVITY_COUNTERS.get(activity_type)
    if counter is not None:
        setattr(service, counter, max(0, getattr(service, counter) + delta))
    if delta > 0 and activity_date is not None:
        if service.last_activity_date is None or activity_date > service.last_activity_date:
            service.last_activity_date = activity_date


class ProfessionalServiceService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._services = ProfessionalServiceRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, service_id: Any) -> ProfessionalService:
        service = await self._services.get(service_id)
        if service is None:
            raise NotFound("Professional service assignment not found")
        return service

    async def create(self, data: dict[str, Any], principal: Principal) -> ProfessionalService:
        project = await ProjectRepo(self._session).get(data["project_id"])
        if project is None:
            raise NotFound("Project not found")
        if data.get("phase_id") is not None:
            if await PhaseRepo(self._session).get_in_project(data["phase_id"], project.id) is None:
                raise ValidationFailed("Phase does not belong to this project")
        end, start = data.get("contract_end_date"), data["contract_start_date"]
        if end is not None and end <= start:
            raise ValidationFailed("contract_end_date must be after contract_start_date")

        professional_type = data["professional_type"]
        values = {k: data[k] for k in _SERVICE_FIELDS if data.get(k) is not None}
        values["professional_name"] = values["professional_name"].strip()
        service = await self._services.create(
            project_id=project.id,
            professional_type=professional_type,
            professional_code=await self._services.next_code(project.project_code, professional_type),
            created_by=principal.subject,
            **values,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="PROFESSIONAL_SERVICE",
            entity_id=service.id,
            project_id=project.id,
            changes={
                "created": snapshot(
                    service, ("professional_code", "professional_name", "professional_type", "contract_value")
                )
            },
        )
        await self._session.commit()
        log.info("professional_service_created", service_id=str(service.id), code=service.professional_code)
        return service

    async def update(
        self, service: ProfessionalService, data: dict[str, Any], principal: Principal
    ) -> ProfessionalService:
        updates = {k: data[k] for k in _SERVICE_FIELDS if k in data and data[k] is not None}
        if not updates:
            raise ValidationFailed("No valid fields to update")
        if "phase_id" in updates:
            if await PhaseRepo(self._session).get_in_project(updates["phase_id"], service.project_id) is None:
                raise ValidationFailed("Phase does not belong to this project")
        end = updates.get("contract_end_date", service.contract_end_date)
        start = updates.get("contract_start_date", service.contract_start_date)
        if end is not None and end <= start:
            raise ValidationFailed("contract_end_date must be after contract_start_date")

        changes = apply_changes(service, updates)
        if changes:
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="PROFESSIONAL_SERVICE",
                entity_id=service.id,
                project_id=service.project_id,
                changes=changes,
            )
        await self._session.commit()
        return service

    async def delete(self, service: ProfessionalService, principal: Principal) -> None:
        service.deleted_at = utcnow()
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="PROFESSIONAL_SERVICE",
            entity_id=service.id,
            project_id=service.project_id,
        )
        await self._session.commit()


class ProfessionalActivityService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._services = ProfessionalServiceRepo(session)
        self._activities = ProfessionalActivityRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, activity_id: Any) -> ProfessionalActivity:
        activity = await self._activities.get(activity_id)
        if activity is None:
            raise NotFound("Professional activity not found")
        return activity

    async def _context(
        self, project_id: Any, service_id: Any, default_phase_id: Any = None
    ) -> tuple[Project, ProfessionalService]:
        project = await ProjectRepo(self._session).get(project_id)
        if project is None:
            raise NotFound("Project not found")
        service = await self._services.get(service_id, for_update=True)
        if service is None or service.project_id != project.id:
            raise NotFound(
                "Professional service assignment not found or does not belong to this project"
            )
        if default_phase_id is not None:
            if await PhaseRepo(self._session).get_in_project(default_phase_id, project.id) is None:
                raise NotFound("Phase not found or does not belong to this project")
        return project, service

    def _initial_status(self, data: dict[str, Any], principal: Principal) -> ActivityStatus:
        if data.get("auto_approve") and principal.role is Role.owner:
            return ActivityStatus.approved
        if data.get("status") is ActivityStatus.draft:
            return ActivityStatus.draft
        return ActivityStatus.pending_approval

    async def _insert(
        self,
        *,
        project: Project,
        service: ProfessionalService,
        item: dict[str, Any],
        sequence: int,
        status: ActivityStatus,
        principal: Principal,
    ) -> ProfessionalActivity:
        auto_approved = status is ActivityStatus.approved
        activity = await self._activities.create(
            activity_code=activity_code(service.professional_type, sequence),
            professional_service_id=service.id,
            project_id=project.id,
            phase_id=item.get("phase_id"),
            activity_type=item["activity_type"],
            activity_date=item["activity_date"],
            visit_purpose=item.get("visit_purpose"),
            inspection_type=item.get("inspection_type"),
            compliance_status=item.get("compliance_status"),
            notes=item.get("notes") or "",
            issues_found=item.get("issues_found") or [],
            material_tests=item.get("material_tests") or [],
            documents=item.get("documents") or [],
            fees_charged=float(item.get("fees_charged") or 0),
            expenses_incurred=float(item.get("expenses_incurred") or 0),
            status=status,
            payment_status=PaymentStatus.pending,
            approved_by=principal.subject if auto_approved else None,
            approved_at=utcnow() if auto_approved else None,
            approval_notes="Auto-approved by owner" if auto_approved else None,
            created_by=principal.subject,
            created_by_name=principal.display_name,
        )
        _bump_counters(service, activity.activity_type, 1, activity.activity_date)
        if auto_approved:
            service.total_fees = money(service.total_fees + activity_amount(activity))
        return activity

    async def create(
        self, data: dict[str, Any], principal: Principal
    ) -> ProfessionalActivity:
        project, service = await self._context(data["project_id"], data["professional_service_id"])
        if data.get("phase_id") is not None:
            if await PhaseRepo(self._session).get_in_project(data["phase_id"], project.id) is None:
                raise ValidationFailed("Phase does not belong to this project")
        errors = activity_errors(data, service.professional_type)
        if errors:
            raise ValidationFailed.from_errors(errors)

        sequence = await self._activities.count_codes(service.professional_type) + 1
        activity = await self._insert(
            project=project,
            service=service,
            item=data,
            sequence=sequence,
            status=self._initial_status(data, principal),
            principal=principal,
        )
        await refresh_financials(self._session, project_id=project.id, phase_ids=[activity.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="PROFESSIONAL_ACTIVITY",
            entity_id=activity.id,
            project_id=project.id,
            changes={"created": snapshot(activity, _ACTIVITY_SNAPSHOT)},
        )
        await self._session.commit()
        log.info("professional_activity_created", activity_id=str(activity.id), code=activity.activity_code)
        return activity

    async def bulk_create(self, data: dict[str, Any], principal: Principal) -> dict[str, Any]:
        items: list[dict[str, Any]] = data.get("activities") or []
        if not items:
            raise ValidationFailed("At least one activity is required")
        default_phase_id = data.get("default_phase_id")
        project, service = await self._context(
            data["project_id"], data["professional_service_id"], default_phase_id
        )

        errors: list[str] = []
        for index, item in enumerate(items, start=1):
            item_errors = activity_errors(item, service.professional_type)
            if item.get("phase_id") is not None:
                phase = await PhaseRepo(self._session).get_in_project(item["phase_id"], project.id)
                if phase is None:
                    item_errors.append("Phase does not belong to this project")
            errors.extend(f"Activity {index}: {e}" for e in item_errors)
        if errors:
            raise ValidationFailed.from_errors(errors)

        status = self._initial_status(data, principal)
        start = await self._activities.count_codes(service.professional_type) + 1
        created: list[ProfessionalActivity] = []
        for offset, item in enumerate(items):
            created.append(
                await self._insert(
                    project=project,
                    service=service,
                    item={**item, "phase_id": item.get("phase_id") or default_phase_id},
                    sequence=start + offset,
                    status=status,
                    principal=principal,
                )
            )

        activity_ids = [str(a.id) for a in created]
        await refresh_financials(
            self._session, project_id=project.id, phase_ids=[a.phase_id for a in created]
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="BULK_PROFESSIONAL_ACTIVITIES",
            entity_id=None,
            project_id=project.id,
            changes={
                "created": {
                    "count": len(created),
                    "professional_service_id": str(service.id),
                    "activities": activity_ids,
                }
            },
        )
        await self._session.commit()
        log.info(
            "professional_activities_bulk_created",
            service_id=str(service.id),
            count=len(created),
            status=status.value,
        )
        return {
            "activities": created,
            "activity_ids": activity_ids,
            "total_created": len(created),
            "status": status.value,
            "requires_approval": status is not ActivityStatus.approved,
        }

    async def update(
        self, activity: ProfessionalActivity, data: dict[str, Any], principal: Principal
    ) -> ProfessionalActivity:
        if activity.status is ActivityStatus.approved and principal.role is not Role.owner:
            raise PermissionDenied("Only owners can edit approved professional activities")
        service = await self._services.get(activity.professional_service_id, for_update=True)
        if service is None:
            raise NotFound("Professional service assignment not found")

        updates = {k: data[k] for k in _ACTIVITY_FIELDS if k in data and data[k] is not None}
        if not updates:
            raise ValidationFailed("No valid fields to update")
        if "phase_id" in updates:
            if await PhaseRepo(self._session).get_in_project(updates["phase_id"], activity.project_id) is None:
                raise ValidationFailed("Phase does not belong to this project")
        merged = {k: getattr(activity, k) for k in _ACTIVITY_FIELDS}
        merged.update(updates)
        errors = activity_errors(merged, service.professional_type)
        if errors:
            raise ValidationFailed.from_errors(errors)

        previous_type = activity.activity_type
        previous_amount = activity_amount(activity)
        previous_phase = activity.phase_id
        changes = apply_changes(activity, updates)
        if not changes:
            await self._session.commit()
            return activity

        if activity.activity_type != previous_type:
            _bump_counters(service, previous_type, -1)
            _bump_counters(service, activity.activity_type, 1, activity.activity_date)
        if activity.status is ActivityStatus.approved:
            service.total_fees = money(service.total_fees - previous_amount + activity_amount(activity))

        await refresh_financials(
            self._session, project_id=activity.project_id, phase_ids=[previous_phase, activity.phase_id]
        )
        await self._audit.add(
            user_id=principal.subject,
            action="UPDATED",
            entity_type="PROFESSIONAL_ACTIVITY",
            entity_id=activity.id,
            project_id=activity.project_id,
            changes=changes,
        )
        await self._session.commit()
        return activity

    async def delete(self, activity: ProfessionalActivity, principal: Principal) -> None:
        service = await self._services.get(activity.professional_service_id, for_update=True)
        activity.deleted_at = utcnow()
        if service is not None:
            _bump_counters(service, activity.activity_type, -1)
            if activity.status is ActivityStatus.approved:
                service.total_fees = money(max(0.0, service.total_fees - activity_amount(activity)))
        await refresh_financials(self._session, project_id=activity.project_id, phase_ids=[activity.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED",
            entity_type="PROFESSIONAL_ACTIVITY",
            entity_id=activity.id,
            project_id=activity.project_id,
            changes={"deleted": snapshot(activity, _ACTIVITY_SNAPSHOT)},
        )
        await self._session.commit()

    async def approve(
        self, activity_id: Any, principal: Principal, *, notes: str = ""
    ) -> ProfessionalActivity:
        activity = await self._activities.get(activity_id, for_update=True)
        if activity is None:
            raise NotFound("Professional activity not found")
        if activity.status not in DECIDABLE_STATUSES:
            raise ValidationFailed(f"Cannot approve activity with status {activity.status.value}")

        activity.approval_notes = notes or None
        activity.rejection_reason = None
        await self._decide(activity, principal, ActivityStatus.approved, notes)
        service = await self._services.get(activity.professional_service_id, for_update=True)
        if service is not None:
            service.total_fees = money(service.total_fees + activity_amount(activity))
        await refresh_financials(self._session, project_id=activity.project_id, phase_ids=[activity.phase_id])
        await self._session.commit()
        log.info("professional_activity_approved", activity_id=str(activity.id), approver=principal.subject)
        return activity

    async def reject(
        self, activity_id: Any, principal: Principal, *, reason: str
    ) -> ProfessionalActivity:
        if not (reason or "").strip():
            raise ValidationFailed("Rejection reason is required")
        activity = await self._activities.get(activity_id, for_update=True)
        if activity is None:
            raise NotFound("Professional activity not found")
        if activity.status not in DECIDABLE_STATUSES:
            raise ValidationFailed(f"Cannot reject activity with status {activity.status.value}")

        activity.rejection_reason = reason.strip()
        await self._decide(activity, principal, ActivityStatus.rejected, reason.strip())
        await refresh_financials(self._session, project_id=activity.project_id, phase_ids=[activity.phase_id])
        await self._session.commit()
        log.info("professional_activity_rejected", activity_id=str(activity.id))
        return activity

    async def _decide(
        self,
        activity: ProfessionalActivity,
        principal: Principal,
        status: ActivityStatus,
        notes: str,
    ) -> None:
        previous = activity.status
        activity.status = status
        activity.approved_by = principal.subject
        activity.approved_at = utcnow()
        action = "APPROVED" if status is ActivityStatus.approved else "REJECTED"
        await ApprovalRepo(self._session).add(
            related_id=activity.id,
            related_model="ProfessionalActivity",
            action=action,
            previous_status=previous.value,
            new_status=status.value,
            approved_by=principal.subject,
            approver_name=principal.display_name,
            notes=notes,
        )
        await self._audit.add(
            user_id=principal.subject,
            action=action,
            entity_type="PROFESSIONAL_ACTIVITY",
            entity_id=activity.id,
            project_id=activity.project_id,
            changes={"status": {"old_value": previous.value, "new_value": status.value}},
        )


# --- Module Notes -----------------------------------------------------------
# Assignment counters are maintained incrementally on create, approve and delete;
# they are not recomputed from the activity table.
