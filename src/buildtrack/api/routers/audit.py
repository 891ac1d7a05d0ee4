from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.api.deps import db_session, page_params
from buildtrack.api.envelope import as_dict, ok
from buildtrack.auth.deps import require_permission
from buildtrack.auth.models import Principal
from buildtrack.db.repositories.audit import AuditRepo
from buildtrack.db.repositories.paging import PageRequest

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("")
async def list_audit_logs(
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    project_id: uuid.UUID | None = None,
    action: str | None = None,
    user_id: str | None = None,
    page: PageRequest = Depends(page_params),
    _: Principal = Depends(require_permission("view_audit_logs")),
    session: AsyncSession = Depends(db_session),
):
    # Newest first (see AuditRepo.search).
    result = await AuditRepo(session).search(
        page,
        entity_type=entity_type,
        entity_id=entity_id,
        project_id=project_id,
        action=action,
        user_id=user_id,
    )
    return ok({"logs": [as_dict(log) for log in result.items], "pagination": result.meta()})
