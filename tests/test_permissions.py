from __future__ import annotations

import pytest

from buildtrack.auth.models import Role, normalize_role
from buildtrack.auth.permissions import PERMISSIONS, permissions_for_role, role_has_permission


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("OWNER", Role.owner),
        ("project_manager", Role.pm),
        ("site_clerk", Role.clerk),
        (" Accountant ", Role.accountant),
        ("janitor", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_role(raw, expected) -> None:
    assert normalize_role(raw) is expected


def test_only_owner_archives_expenses() -> None:
    assert role_has_permission("owner", "archive_expense")
    for role in Role:
        if role is not Role.owner:
            assert not role_has_permission(role, "archive_expense")


def test_unknown_permission_fails_closed() -> None:
    assert not role_has_permission(Role.owner, "launch_rockets")
    assert not role_has_permission("janitor", "view_projects")


def test_investor_sees_financing_but_not_expenses() -> None:
    granted = permissions_for_role(Role.investor)
    assert "view_financing" in granted
    assert "view_reports" in granted
    assert "view_expenses" not in granted


def test_owner_holds_every_permission() -> None:
    assert all(Role.owner in roles for roles in PERMISSIONS.values())
