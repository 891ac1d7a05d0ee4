"""
buildtrack.services.expenses

Expense workflow service.

Responsibilities:
- Create/update expenses with project/phase consistency and indirect-cost rules.
- Archive, restore and (guarded) permanent deletion.
- Approve/reject with capital checks, phase budget checks for direct costs and
  indirect-budget checks for indirect costs, approval chain, approval records,
  audit entries and financial recalculation.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.auth.models import Principal
from buildtrack.db.models import Expense, ExpenseStatus, Project, utcnow
from buildtrack.db.repositories.approvals import ApprovalRepo
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.expenses import ExpenseRepo
from buildtrack.db.repositories.phases import PhaseRepo
from buildtrack.db.repositories.projects import ProjectRepo
from buildtrack.errors import NotFound, PermissionDenied, ValidationFailed
from buildtrack.observability.logging import get_logger
from buildtrack.services.changes import apply_changes, snapshot
from buildtrack.services.finance import (
    check_indirect_budget,
    check_phase_budget,
    refresh_financials,
    validate_capital_availability,
)

log = get_logger(__name__)

EDITABLE_STATUSES = (ExpenseStatus.pending, ExpenseStatus.rejected)
_SNAPSHOT_FIELDS = ("expense_code", "amount", "category", "status", "phase_id", "expense_date")
_EDITABLE_FIELDS = (
    "amount",
    "category",
    "description",
    "vendor",
    "expense_date",
    "payment_method",
    "notes",
)


class ExpenseService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._expenses = ExpenseRepo(session)
        self._audit = AuditRepo(session)

    async def _project(self, project_id: Any) -> Project:
        project = await ProjectRepo(self._session).get(project_id)
        if project is None:
            raise NotFound("Project not found")
        return project

    async def _check_phase(self, phase_id: Any, project_id: Any) -> None:
        if phase_id is None:
            return
        if await PhaseRepo(self._session).get_in_project(phase_id, project_id) is None:
            raise ValidationFailed("Phase does not belong to this project")

    async def get(self, expense_id: Any) -> Expense:
        expense = await self._expenses.get(expense_id)
        if expense is None:
            raise NotFound("Expense not found")
        return expense

    async def create(self, data: dict[str, Any], principal: Principal) -> Expense:
        project = await self._project(data["project_id"])
        await self._check_phase(data.get("phase_id"), project.id)

        is_indirect = bool(data.get("is_indirect_cost"))
        if is_indirect and data.get("indirect_cost_category") is None:
            raise ValidationFailed("indirect_cost_category is required for indirect costs")

        expense_date: date = data.get("expense_date") or date.today()
        expense = await self._expenses.create(
            expense_code=await self._expenses.next_code(expense_date),
            project_id=project.id,
            phase_id=data.get("phase_id"),
            amount=float(data["amount"]),
            category=data["category"].strip(),
            description=(data.get("description") or "").strip(),
            vendor=(data.get("vendor") or "").strip(),
            expense_date=expense_date,
            payment_method=data.get("payment_method") or "cash",
            status=ExpenseStatus.pending,
            is_indirect_cost=is_indirect,
            indirect_cost_category=data.get("indirect_cost_category") if is_indirect else None,
            approval_chain=[],
            notes=data.get("notes") or "",
            submitted_by=principal.subject,
            submitted_by_name=principal.display_name,
        )
        await refresh_financials(self._session, project_id=project.id, phase_ids=[expense.phase_id])
        await self._audit.add(
            user_id=principal.subject,
            action="CREATED",
            entity_type="EXPENSE",
            entity_id=expense.id,
            project_id=project.id,
            changes={"created": snapshot(expense, _SNAPSHOT_FIELDS)},
        )
        await self._session.commit()
        log.info("expense_created", expense_id=str(expense.id), amount=expense.amount)
        return expense

    async def update(self, expense: Expense, data: dict[str, Any], principal: Principal) -> Expense:
        if expense.status not in EDITABLE_STATUSES and not principal.is_manager:
            raise PermissionDenied(
                f"Cannot edit expense with status {expense.status.value}. "
                "Only PENDING or REJECTED expenses can be edited."
            )

        updates: dict[str, Any] = {}
        for key in _EDITABLE_FIELDS:
            if key in data and data[key] is not None:
                value = data[key]
                updates[key] = value.strip() if isinstance(value, str) else value

        if "phase_id" in data:
            await self._check_phase(data["phase_id"], expense.project_id)
            updates["phase_id"] = data["phase_id"]

        if data.get("status") is not None and data["status"] != expense.status:
            if not principal.is_manager:
                raise PermissionDenied("Only owners and project managers can change expense status")
            updates["status"] = data["status"]

        if data.get("is_indirect_cost") is not None:
            updates["is_indirect_cost"] = bool(data["is_indirect_cost"])
        is_indirect = updates.get("is_indirect_cost", expense.is_indirect_cost)
        category = data.get("indirect_cost_category", expense.indirect_cost_category)
        if is_indirect:
            if category is None:
                raise ValidationFailed("indirect_cost_category is required for indirect costs")
            if "is_indirect_cost" in updates or "indirect_cost_category" in data:
                updates["indirect_cost_category"] = category
        elif "is_indirect_cost" in updates:
            updates["indirect_cost_category"] = None

        if not updates:
            raise ValidationFailed("No valid fields to update")

        previous_phase = expense.phase_id
        changes = apply_changes(expense, updates)
        if changes:
            await refresh_financials(
                self._session,
                project_id=expense.project_id,
                phase_ids=[previous_phase, expense.phase_id],
            )
            await self._audit.add(
                user_id=principal.subject,
                action="UPDATED",
                entity_type="EXPENSE",
                entity_id=expense.id,
                project_id=expense.project_id,
                changes=changes,
            )
        await self._session.commit()
        return expense

    async def delete(self, expense_id: Any, principal: Principal, *, force: bool) -> None:
        expense = await self._expenses.get(expense_id, include_archived=True)
        if expense is None:
            raise NotFound("Expense not found")
        if expense.archived_at is not None:
            raise ValidationFailed("Expense is archived. Restore it before deleting.")
        if (
            expense.status in (ExpenseStatus.approved, ExpenseStatus.paid)
            and expense.amount > 0
            and not force
        ):
            raise ValidationFailed(
                f"Cannot delete {expense.status.value} expense with recorded amount. "
                "Archive it instead, or pass force=true.",
                details={"recommendation": "archive"},
            )

        project_id, phase_id = expense.project_id, expense.phase_id
        await self._audit.add(
            user_id=principal.subject,
            action="DELETED_PERMANENTLY",
            entity_type="EXPENSE",
            entity_id=expense.id,
            project_id=project_id,
            changes={"deleted": snapshot(expense, _SNAPSHOT_FIELDS), "forced": force},
        )
        await self._expenses.delete(expense)
        await refresh_financials(self._session, project_id=project_id, phase_ids=[phase_id])
        await self._session.commit()
        log.info("expense_deleted", expense_id=str(expense_id), forced=force)

    async def archive(self, expense_id: Any, principal: Principal) -> Expense:
        expense = await self._expenses.get(expense_id, for_update=True)
        if expense is None:
            raise NotFound("Expense not found or already archived")

        expense.archived_at = utcnow()
        expense.archived_by = principal.subject
        await refresh_financials(
            self._session, project_id=expense.project_id, phase_ids=[expense.phase_id]
        )
        await self._audit.add(
            user_id=principal.subject,
            action="ARCHIVED",
            entity_type="EXPENSE",
            entity_id=expense.id,
            project_id=expense.project_id,
            changes={"archived_at": expense.archived_at.isoformat()},
        )
        await self._session.commit()
        log.info("expense_archived", expense_id=str(expense.id))
        return expense

    async def restore(self, expense_id: Any, principal: Principal) -> Expense:
        expense = await self._expenses.get(expense_id, include_archived=True, for_update=True)
        if expense is None or expense.archived_at is None:
            raise NotFound("Archived expense not found")

        expense.archived_at = None
        expense.archived_by = None
        await refresh_financials(
            self._session, project_id=expense.project_id, phase_ids=[expense.phase_id]
        )
        await self._audit.add(
            user_id=principal.subject,
            action="RESTORED",
            entity_type="EXPENSE",
            entity_id=expense.id,
            project_id=expense.project_id,
        )
        await self._session.commit()
        return expense

    async def approve(
        self, expense_id: Any, principal: Principal, *, notes: str = ""
    ) -> tuple[Expense, list[str]]:
        expense = await self._expenses.get(expense_id, for_update=True)
        if expense is None:
            raise NotFound("Expense not found")
        if expense.status not in EDITABLE_STATUSES:
            raise ValidationFailed(
                f"Cannot approve expense with status {expense.status.value}"
            )

        capital = await validate_capital_availability(
            self._session, expense.project_id, expense.amount
        )
        if not capital.is_valid:
            raise ValidationFailed(capital.message, details={"capital": capital.as_dict()})

        warnings: list[str] = []
        if expense.is_indirect_cost:
            # Indirect costs draw on the project's indirect budget, never a phase budget.
            budget = await check_indirect_budget(
                self._session, await self._project(expense.project_id), expense.amount
            )
            warnings.extend(budget.warnings)
            if not budget.within_budget and not principal.is_manager:
                raise ValidationFailed(
                    "Expense exceeds the indirect costs budget. Only owners and project "
                    "managers can approve over-budget indirect costs.",
                    details={
                        "indirect_budget": {
                            "available": budget.available,
                            "required": budget.required,
                            "budget_total": budget.budget_total,
                        }
                    },
                )
        elif expense.phase_id is not None:
            phase = await PhaseRepo(self._session).get(expense.phase_id)
            if phase is not None:
                budget = await check_phase_budget(self._session, phase, expense.amount)
                warnings.extend(budget.warnings)
                if not budget.within_budget and not principal.is_manager:
                    raise ValidationFailed(
                        "Expense exceeds the phase budget. Only owners and project "
                        "managers can approve over-budget expenses.",
                        details={
                            "phase_budget": {
                                "available": budget.available,
                                "required": budget.required,
                                "budget_total": budget.budget_total,
                            }
                        },
                    )

        await self._decide(expense, principal, ExpenseStatus.approved, notes)
        await self._session.commit()
        log.info(
            "expense_approved",
            expense_id=str(expense.id),
            approver=principal.subject,
            amount=expense.amount,
        )
        return expense, warnings

    async def reject(self, expense_id: Any, principal: Principal, *, reason: str) -> Expense:
        if not (reason or "").strip():
            raise ValidationFailed("Rejection reason is required")
        expense = await self._expenses.get(expense_id, for_update=True)
        if expense is None:
            raise NotFound("Expense not found")
        if expense.status not in (ExpenseStatus.pending, ExpenseStatus.approved):
            raise ValidationFailed(f"Cannot reject expense with status {expense.status.value}")

        await self._decide(expense, principal, ExpenseStatus.rejected, reason.strip())
        await self._session.commit()
        log.info("expense_rejected", expense_id=str(expense.id), approver=principal.subject)
        return expense

    async def _decide(
        self, expense: Expense, principal: Principal, status: ExpenseStatus, notes: str
    ) -> None:
        previous = expense.status
        expense.status = status
        expense.approval_chain = [
            *(expense.approval_chain or []),
            {
                "approver_id": principal.subject,
                "approver_name": principal.display_name,
                "status": status.value,
                "notes": notes,
                "approved_at": utcnow().isoformat(),
            },
        ]
        action = "APPROVED" if status is ExpenseStatus.approved else "REJECTED"
        await ApprovalRepo(self._session).add(
            related_id=expense.id,
            related_model="Expense",
            action=action,
            previous_status=previous.value,
            new_status=status.value,
            approved_by=principal.subject,
            approver_name=principal.display_name,
            notes=notes,
        )
        await refresh_financials(
            self._session, project_id=expense.project_id, phase_ids=[expense.phase_id]
        )
        await self._audit.add(
            user_id=principal.subject,
            action=action,
            entity_type="EXPENSE",
            entity_id=expense.id,
            project_id=expense.project_id,
            changes={"status": {"old_value": previous.value, "new_value": status.value}, "notes": notes},
        )


# --- Module Notes -----------------------------------------------------------
# Expense status moves only through approve/reject (or a manager's PATCH); each
# move appends to `approval_chain`, writes an `Approval` row and recalculates the
# phase and project so finance snapshots never lag behind approvals.
