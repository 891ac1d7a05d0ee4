from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Subcontractor, SubcontractorStatus
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class SubcontractorRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Subcontractor:
        sub = Subcontractor(**fields)
        self._session.add(sub)
        await self._session.flush()
        return sub

    async def get(self, subcontractor_id: uuid.UUID) -> Subcontractor | None:
        sub = await self._session.get(Subcontractor, subcontractor_id)
        if sub is None or sub.deleted_at is not None:
            return None
        return sub

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        status: SubcontractorStatus | None = None,
        subcontractor_type: str | None = None,
        search: str | None = None,
    ) -> Page[Subcontractor]:
        stmt = select(Subcontractor).where(Subcontractor.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(Subcontractor.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(Subcontractor.phase_id == phase_id)
        if status is not None:
            stmt = stmt.where(Subcontractor.status == status)
        if subcontractor_type:
            stmt = stmt.where(Subcontractor.subcontractor_type == subcontractor_type)
        if search:
            stmt = stmt.where(Subcontractor.subcontractor_name.ilike(f"%{search}%"))
        stmt = stmt.order_by(desc(Subcontractor.created_at))
        return await fetch_page(self._session, stmt, page)

    async def list_for(
        self, *, project_id: uuid.UUID | None = None, phase_id: uuid.UUID | None = None
    ) -> list[Subcontractor]:
        stmt = select(Subcontractor).where(Subcontractor.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(Subcontractor.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(Subcontractor.phase_id == phase_id)
        return list((await self._session.execute(stmt)).scalars().all())
