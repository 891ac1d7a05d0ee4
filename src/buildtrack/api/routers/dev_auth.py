from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from buildtrack.api.deps import settings_dep
from buildtrack.api.envelope import ok
from buildtrack.auth.jwt import JwtConfig, issue_token
from buildtrack.auth.models import normalize_role
from buildtrack.errors import NotFound, ValidationFailed
from buildtrack.settings import Settings

router = APIRouter(prefix="/api/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=256)
    role: str = Field(min_length=1, max_length=64)
    name: str = Field(default="", max_length=256)
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


@router.post("/token")
async def mint_dev_token(body: DevTokenRequest, settings: Settings = Depends(settings_dep)):
    if settings.env == "prod":
        raise NotFound("Not found")
    role = normalize_role(body.role)
    if role is None:
        raise ValidationFailed(f"Unknown role '{body.role}'")

    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=body.subject,
        role=role.value,
        name=body.name,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return ok({"access_token": token, "token_type": "bearer", "role": role.value})
