from __future__ import annotations

from fastapi import APIRouter, Depends

from buildtrack.api.envelope import ok
from buildtrack.auth.deps import get_principal
from buildtrack.auth.models import Principal
from buildtrack.auth.permissions import permissions_for_role

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me")
async def whoami(principal: Principal = Depends(get_principal)):
    return ok(
        {
            "subject": principal.subject,
            "name": principal.display_name,
            "role": principal.role.value,
            "permissions": permissions_for_role(principal.role),
        }
    )
