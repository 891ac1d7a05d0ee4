"""
buildtrack.auth.permissions

Static permission table.

Responsibilities:
- Map every permission name to the roles that hold it.
- Answer "can this role do X" and "what can this role do" lookups.
"""

from __future__ import annotations

from buildtrack.auth.models import Role, normalize_role

_ALL = frozenset(Role)
_STAFF = frozenset(
    {Role.owner, Role.pm, Role.clerk, Role.accountant, Role.supervisor}
)
_MANAGERS = frozenset({Role.owner, Role.pm})

PERMISSIONS: dict[str, frozenset[Role]] = {
    # Projects
    "view_projects": _ALL,
    "create_project": _MANAGERS,
    "edit_project": _MANAGERS,
    "delete_project": frozenset({Role.owner}),
    # Finances / capital
    "manage_project_finances": frozenset({Role.owner, Role.pm, Role.accountant}),
    "view_financing": frozenset({Role.owner, Role.investor, Role.accountant}),
    "update_project_finances": frozenset({Role.owner}),
    # Phases
    "view_phases": _ALL,
    "create_phase": _MANAGERS,
    "edit_phase": _MANAGERS,
    "delete_phase": frozenset({Role.owner}),
    "manage_quality_checkpoints": frozenset({Role.owner, Role.pm, Role.supervisor}),
    # Budget reallocations
    "view_budget_reallocations": _ALL,
    "create_budget_reallocation": frozenset({Role.owner, Role.pm, Role.accountant}),
    "approve_budget_reallocation": frozenset({Role.owner, Role.pm, Role.accountant}),
    # Expenses
    "view_expenses": _STAFF,
    "create_expense": frozenset({Role.clerk, Role.pm, Role.owner, Role.accountant}),
    "edit_expense": frozenset({Role.clerk, Role.pm, Role.owner, Role.accountant}),
    "delete_expense": frozenset({Role.owner}),
    "archive_expense": frozenset({Role.owner}),
    "approve_expense": frozenset({Role.pm, Role.owner, Role.accountant}),
    "reject_expense": frozenset({Role.pm, Role.owner, Role.accountant}),
    "export_expenses": frozenset({Role.owner, Role.pm, Role.accountant}),
    # Labour
    "view_labour": _STAFF,
    "manage_workers": _MANAGERS,
    "create_labour_entry": frozenset({Role.owner, Role.pm, Role.clerk, Role.supervisor}),
    "edit_labour_entry": frozenset({Role.owner, Role.pm, Role.clerk, Role.supervisor}),
    "delete_labour_entry": _MANAGERS,
    "approve_labour_entry": _MANAGERS,
    # Equipment
    "view_equipment": _STAFF,
    "create_equipment": _MANAGERS,
    "edit_equipment": _MANAGERS,
    "delete_equipment": frozenset({Role.owner}),
    # Subcontractors
    "view_subcontractors": _STAFF,
    "manage_subcontractors": _MANAGERS,
    "delete_subcontractor": frozenset({Role.owner}),
    # Professional services
    "view_professional_services": _STAFF,
    "manage_professional_services": _MANAGERS,
    "create_professional_activity": frozenset({Role.owner, Role.pm, Role.clerk}),
    "edit_professional_activity": frozenset({Role.owner, Role.pm, Role.clerk}),
    "delete_professional_activity": frozenset({Role.owner}),
    "approve_professional_activity": _MANAGERS,
    # Reporting / oversight
    "view_reports": frozenset(
        {Role.owner, Role.investor, Role.pm, Role.accountant, Role.supervisor}
    ),
    "view_approvals": frozenset({Role.owner, Role.pm, Role.accountant}),
    "bulk_approve": _MANAGERS,
    "view_audit_logs": frozenset({Role.owner, Role.pm, Role.accountant}),
    "manage_users": frozenset({Role.owner}),
}


def role_has_permission(role: Role | str | None, permission: str) -> bool:
    resolved = role if isinstance(role, Role) else normalize_role(role)
    if resolved is None:
        return False
    return resolved in PERMISSIONS.get(permission, frozenset())


def permissions_for_role(role: Role | str | None) -> list[str]:
    resolved = role if isinstance(role, Role) else normalize_role(role)
    if resolved is None:
        return []
    return sorted(name for name, roles in PERMISSIONS.items() if resolved in roles)


# --- Module Notes -----------------------------------------------------------
# Unknown permission names resolve to "nobody" rather than raising, so a typo in a
# route dependency fails closed.
