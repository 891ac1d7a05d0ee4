from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import LabourEntry, LabourEntryStatus
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class LabourEntryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> LabourEntry:
        entry = LabourEntry(**fields)
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def get(self, entry_id: uuid.UUID, *, for_update: bool = False) -> LabourEntry | None:
        entry = await self._session.get(LabourEntry, entry_id, with_for_update=for_update)
        if entry is None or entry.deleted_at is not None:
            return None
        return entry

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        worker_id: uuid.UUID | None = None,
        statuses: list[LabourEntryStatus] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
    ) -> Page[LabourEntry]:
        stmt = select(LabourEntry).where(LabourEntry.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(LabourEntry.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(LabourEntry.phase_id == phase_id)
        if worker_id is not None:
            stmt = stmt.where(LabourEntry.worker_id == worker_id)
        if statuses:
            stmt = stmt.where(LabourEntry.status.in_(statuses))
        if date_from is not None:
            stmt = stmt.where(LabourEntry.entry_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(LabourEntry.entry_date <= date_to)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                LabourEntry.worker_name.ilike(pattern)
                | LabourEntry.skill_type.ilike(pattern)
                | LabourEntry.task_description.ilike(pattern)
            )
        stmt = stmt.order_by(desc(LabourEntry.entry_date), desc(LabourEntry.created_at))
        return await fetch_page(self._session, stmt, page)

    async def pending(self, *, limit: int = 100) -> list[LabourEntry]:
        stmt = (
            select(LabourEntry)
            .where(
                LabourEntry.deleted_at.is_(None),
                LabourEntry.status == LabourEntryStatus.submitted,
            )
            .order_by(LabourEntry.entry_date)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())
