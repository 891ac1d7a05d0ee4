"""
buildtrack.auth.models

Auth domain models.

Responsibilities:
- Define the user roles known to the service.
- Define the authenticated identity type (`Principal`) injected into endpoints.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(enum.StrEnum):
    owner = "owner"
    pm = "pm"
    clerk = "clerk"
    accountant = "accountant"
    supervisor = "supervisor"
    investor = "investor"
    supplier = "supplier"


_ROLE_ALIASES = {
    "project_manager": Role.pm,
    "projectmanager": Role.pm,
    "site_clerk": Role.clerk,
}


def normalize_role(raw: str | None) -> Role | None:
    """Map a role claim (any case, legacy aliases included) onto a `Role`."""
    if not raw:
        return None
    key = raw.strip().lower()
    if key in _ROLE_ALIASES:
        return _ROLE_ALIASES[key]
    try:
        return Role(key)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity.
    """

    subject: str
    role: Role
    name: str = ""

    @property
    def is_owner(self) -> bool:
        return self.role is Role.owner

    @property
    def is_manager(self) -> bool:
        # Owners and project managers share the override rights on workflows.
        return self.role in (Role.owner, Role.pm)

    @property
    def display_name(self) -> str:
        return self.name or self.subject


# --- Module Notes -----------------------------------------------------------
# Role aliases are normalised when a token is decoded, so the rest of the code only
# sees `Role` members.
