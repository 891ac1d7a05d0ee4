"""
buildtrack.services.reallocations

Budget reallocation workflow.

Responsibilities:
- Accept reallocation requests between phases, or between a phase and the
  project's unallocated budget, after checking the source has headroom.
- Re-check headroom on approval, then move the amount between phase allocations.
- Reject pending requests with a reason.
- Record approvals and audit entries for every decision.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import (
    BudgetReallocation,
    Phase,
    Project,
    ReallocationStatus,
    ReallocationType,
    utcnow,
)
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.db.repositories.reallocations import BudgetReallocationRepo
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.calculations import money
from buildtrack.services.changes import snapshot
from buildtrack.services.finance import recalculate_phase_spending, recalculate_project_finances

log = get_logger(__name__)

# Share of available capital above which an executed move is flagged.
CAPITAL_WARNING_SHARE = 0.8
_SNAPSHOT_FIELDS = ("reallocation_type", "amount", "reason", "from_phase_id", "to_phase_id")


def _total(phase: Phase) -> float:
    return float((phase.budget_allocation or {}).get("total") or 0)


class BudgetReallocationService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._reallocations = BudgetReallocationRepo(session)
        self._phases = PhaseRepo(session)
        self._audit = AuditRepo(session)

    async def get(self, reallocation_id: Any) -> BudgetReallocation:
        reallocation = await self._reallocations.get(reallocation_id)
        if reallocation is None:
            raise NotFound("Budget reallocation request not found")
        return reallocation

    async def _phase(self, phase_id: uuid.UUID, project_id: uuid.UUID, side: str) -> Phase:
        phase = await self._phases.get_in_project(phase_id, project_id)
        if phase is None:
            raise NotFound(f"{side} phase not found or does not belong to project")
        return phase

    async def phase_available(self, phase: Phase) -> float:
        await recalculate_phase_spending(self._session, phase)
        return float((phase.financial_states or {}).get("remaining") or 0)

    async def project_available(self, project: Project) -> float:
        """Project budget not yet allocated to any phase."""
        allocated = sum(_total(p) for p in await self._phases.list_for_project(project.id))
        return money(float((project.budget or {}).get("total") or 0) - allocated)

    async def _check_headroom(self, project: Project, source: Phase | None, amount: float) -> None:
        # Without a source phase the amount comes from the unallocated project budget.
        if source is None:
            available = await self.project_available(project)
            label = "Insufficient project budget"
        else:
            available = await self.phase_available(source)
            label = "Insufficient budget in source phase"
        if amount > available:
            raise ValidationFailed(
                f"{label}. Available: {available:,.2f}, Requested: {amount:,.2f}",
                details={"available": money(available), "requested": money(amount)},
            )

    async def _endpoints(
        self, kind: ReallocationType, data: dict[str, Any], project_id: uuid.UUID
    ) -> tuple[Phase | None, Phase | None]:
        from_id, to_id = data.get("from_phase_id"), data.get("to_phase_id")
        needs_source = kind in (ReallocationType.phase_to_phase, ReallocationType.phase_to_project)
        needs_target = kind in (ReallocationType.phase_to_phase, ReallocationType.project_to_phase)
        label = kind.value.replace("_", "-")

        errors: list[str] = []
        if needs_source and from_id is None:
            errors.append(f"Source phase is required for {label} reallocation")
        if not needs_source and from_id is not None:
            errors.append(f"Source phase should not be provided for {label} reallocation")
        if needs_target and to_id is None:
            errors.append(f"Target phase is required for {label} reallocation")
        if not needs_target and to_id is not None:
            errors.append(f"Target phase should not be provided for {label} reallocation")
        if from_id is not None and from_id == to_id:
            errors.append("Source and target phases cannot be the same")
        if errors:
            raise ValidationFailed.from_errors(errors)

        source = await self._phase(from_id, project_id, "Source") if needs_source else None
        target = await self._phase(to_id, project_id, "Target") if needs_target else None
        return source, target

    async def create(self, data: dict[str, Any], principal: Principal) -> BudgetReallocation:
        project = await ProjectRepo(self._session).get(data["project_id"])
        if project is None:
            raise NotFound("Project not found")
        reason = (data.get("reason") or "").strip()
        if not reason:
            raise ValidationFailed("Reason is required")

        kind = ReallocationType(data["reallocation_type"])
        amount = money(float(data["amount"]))
        source, target = await self._endpoints(kind, data, project.id)
        await self._check_headroom(project, source, amount)

        reallocation = await self._reallocations.create(
            project_id=project.id,
            from_phase_id=source.id if source else None,
            to_phase_id=target.id if target else None,
            reallocation_type=kind,
            amount=amount,
            reason=reason,
            budget_breakdown=data.get("budget_breakdown") or {},
            status=ReallocationStatus.pending,
            requested_by=principal.subject,
            requested_by_name=principal.display_name,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="BUDGET_REALLOCATION",
            entity_id=reallocation.id,
            project_id=project.id,
            changes={"created": snapshot(reallocation, _SNAPSHOT_FIELDS)},
        )
        await self._session.commit()
        log.info(
            "budget_reallocation_requested",
            reallocation_id=str(reallocation.id),
            type=kind.value,
            amount=amount,
        )
        return reallocation

    async def _pending(self, reallocation_id: Any, verb: str) -> BudgetReallocation:
        reallocation = await self._reallocations.get(reallocation_id, for_update=True)
        if reallocation is None:
            raise NotFound("Budget reallocation request not found")
        if reallocation.status is not ReallocationStatus.pending:
            raise ValidationFailed(
                f"Cannot {verb} reallocation with status: {reallocation.status.value}"
            )
        return reallocation

    async def approve(
        self, reallocation_id: Any, principal: Principal, *, notes: str = ""
    ) -> tuple[BudgetReallocation, list[str]]:
        reallocation = await self._pending(reallocation_id, "approve")
        project = await ProjectRepo(self._session).get(reallocation.project_id)
        if project is None:
            raise NotFound("Project not found")

        source = target = None
        if reallocation.from_phase_id is not None:
            source = await self._phases.get(reallocation.from_phase_id)
        if reallocation.to_phase_id is not None:
            target = await self._phases.get(reallocation.to_phase_id)
        if (reallocation.from_phase_id and source is None) or (
            reallocation.to_phase_id and target is None
        ):
            raise NotFound("Source or target phase not found")

        # Spending may have moved since the request; check again before executing.
        amount = reallocation.amount
        await self._check_headroom(project, source, amount)

        warnings: list[str] = []
        finance = await recalculate_project_finances(self._session, project.id)
        available_capital = finance.available_capital
        if available_capital > 0 and amount > available_capital * CAPITAL_WARNING_SHARE:
            warnings.append(
                f"Reallocating {amount:,.2f} while available capital is {available_capital:,.2f}"
            )
            log.warning(
                "budget_reallocation_capital_warning",
                reallocation_id=str(reallocation.id),
                amount=amount,
                available_capital=available_capital,
            )

        moved: dict[str, Any] = {}
        for phase, delta in ((source, -amount), (target, amount)):
            if phase is None:
                continue
            before = _total(phase)
            phase.budget_allocation = {
                **(phase.budget_allocation or {}),
                "total": money(before + delta),
            }
            await recalculate_phase_spending(self._session, phase)
            moved[str(phase.id)] = {"old_value": before, "new_value": _total(phase)}

        now = utcnow()
        reallocation.status = ReallocationStatus.executed
        reallocation.approved_by = principal.subject
        reallocation.approved_by_name = principal.display_name
        reallocation.approval_notes = notes.strip() or None
        reallocation.approved_at = now
        reallocation.executed_at = now

        await ApprovalRepo(self._session).add(
            related_id=reallocation.id,
            related_model="BUDGET_REALLOCATION",
            action="APPROVED",
            previous_status=ReallocationStatus.pending.value,
            new_status=ReallocationStatus.executed.value,
            approved_by=principal.subject,
            approver_name=principal.display_name,
            notes=notes,
        )
        await self._audit.add(
            user_id=principal.subject,
            action="APPROVED",
            entity_type="BUDGET_REALLOCATION",
            entity_id=reallocation.id,
            project_id=reallocation.project_id,
            changes={
                "status": {
                    "old_value": ReallocationStatus.pending.value,
                    "new_value": ReallocationStatus.executed.value,
                },
                "phase_budgets": moved,
            },
        )
        await self._session.commit()
        log.info(
            "budget_reallocation_executed",
            reallocation_id=str(reallocation.id),
            approver=principal.subject,
            amount=amount,
        )
        return reallocation, warnings

    async def reject(
        self, reallocation_id: Any, principal: Principal, *, reason: str
    ) -> BudgetReallocation:
        if not (reason or "").strip():
            raise ValidationFailed("Rejection reason is required")
        reallocation = await self._pending(reallocation_id, "reject")

        reallocation.status = ReallocationStatus.rejected
        reallocation.rejected_by = principal.subject
        reallocation.rejection_reason = reason.strip()
        reallocation.rejected_at = utcnow()

        await ApprovalRepo(self._session).add(
            related_id=reallocation.id,
            related_model="BUDGET_REALLOCATION",
            action="REJECTED",
            previous_status=ReallocationStatus.pending.value,
            new_status=ReallocationStatus.rejected.value,
            approved_by=principal.subject,
            approver_name=principal.display_name,
            notes=reason.strip(),
        )
        await self._audit.add(
            user_id=principal.subject,
            action="REJECTED",
            entity_type="BUDGET_REALLOCATION",
            entity_id=reallocation.id,
            project_id=reallocation.project_id,
            changes={"rejection_reason": reason.strip()},
        )
        await self._session.commit()
        log.info("budget_reallocation_rejected", reallocation_id=str(reallocation.id))
        return reallocation


# --- Module Notes -----------------------------------------------------------
# Moves only change phase allocations. The project budget total stays as set, so
# project-to-phase moves draw on the unallocated remainder (total minus the sum of
# phase allocations) and phase-to-project moves return amounts to it.
