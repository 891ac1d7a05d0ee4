from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import AcquisitionType, Equipment, EquipmentStatus
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class EquipmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Equipment:
        item = Equipment(**fields)
        self._session.add(item)
        await self._session.flush()
        return item

    async def get(self, equipment_id: uuid.UUID) -> Equipment | None:
        item = await self._session.get(Equipment, equipment_id)
        if item is None or item.deleted_at is not None:
            return None
        return item

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        status: EquipmentStatus | None = None,
        equipment_type: str | None = None,
        acquisition_type: AcquisitionType | None = None,
    ) -> Page[Equipment]:
        stmt = select(Equipment).where(Equipment.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(Equipment.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(Equipment.phase_id == phase_id)
        if status is not None:
            stmt = stmt.where(Equipment.status == status)
        if equipment_type:
            stmt = stmt.where(Equipment.equipment_type == equipment_type)
        if acquisition_type is not None:
            stmt = stmt.where(Equipment.acquisition_type == acquisition_type)
        stmt = stmt.order_by(desc(Equipment.created_at))
        return await fetch_page(self._session, stmt, page)
