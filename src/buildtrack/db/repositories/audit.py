"""
buildtrack.db.repositories.audit

Repository for `AuditLog` entries.

Responsibilities:
- Append audit entries for user actions.
- Query the trail by entity, project or action.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import AuditLog
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID | None,
        project_id: uuid.UUID | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLog:
        # Append-only: there is no update or delete path for audit rows.
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            changes=changes or {},
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_for_entity(
        self, entity_type: str, entity_id: uuid.UUID, *, limit: int = 50
    ) -> list[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(desc(AuditLog.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def search(
        self,
        page: PageRequest,
        *,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
        action: str | None = None,
        user_id: str | None = None,
    ) -> Page[AuditLog]:
        stmt = select(AuditLog)
        if entity_type:
            stmt = stmt.where(AuditLog.entity_type == entity_type.upper())
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)
        if project_id is not None:
            stmt = stmt.where(AuditLog.project_id == project_id)
        if action:
            stmt = stmt.where(AuditLog.action == action.upper())
        if user_id:
            stmt = stmt.where(AuditLog.user_id == user_id)
        stmt = stmt.order_by(desc(AuditLog.created_at))
        return await fetch_page(self._session, stmt, page)


# --- Module Notes -----------------------------------------------------------
# Entries are append-only; no update or delete helpers are offered.
