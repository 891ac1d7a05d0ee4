"""
buildtrack.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal`.
- Enforce permissions via a reusable dependency factory.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from buildtrack.api.deps import settings_dep
from buildtrack.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from buildtrack.auth.models import Principal, normalize_role
from buildtrack.auth.permissions import role_has_permission
from buildtrack.errors import AuthenticationRequired, PermissionDenied
from buildtrack.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> Principal:
    if creds is None or not creds.credentials:
        raise AuthenticationRequired("Unauthorized")

    try:
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise AuthenticationRequired(f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    if not subject:
        raise AuthenticationRequired("Invalid token subject")
    role = normalize_role(payload.get("role"))
    if role is None:
        raise AuthenticationRequired("Invalid token role")

    return Principal(subject=subject, role=role, name=str(payload.get("name") or ""))


def require_permission(permission: str):
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not role_has_permission(principal.role, permission):
            raise PermissionDenied(
                f"Insufficient permissions. Role '{principal.role.value}' cannot {permission.replace('_', ' ')}."
            )
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# Routes declare `principal: Principal = Depends(require_permission("..."))` so the
# check and the identity arrive through one dependency.
