"""
buildtrack.db.repositories.reallocations

Repository for `BudgetReallocation` requests.

Responsibilities:
- Create/fetch reallocation requests (soft-deleted rows hidden).
- List requests by project, phase (either side of the move) and status, newest first.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import BudgetReallocation, ReallocationStatus
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class BudgetReallocationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> BudgetReallocation:
        reallocation = BudgetReallocation(**fields)
        self._session.add(reallocation)
        await self._session.flush()
        return reallocation

    async def get(
        self, reallocation_id: uuid.UUID, *, for_update: bool = False
    ) -> BudgetReallocation | None:
        reallocation = await self._session.get(
            BudgetReallocation, reallocation_id, with_for_update=for_update
        )
        if reallocation is None or reallocation.deleted_at is not None:
            return None
        return reallocation

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        status: ReallocationStatus | None = None,
    ) -> Page[BudgetReallocation]:
        stmt = select(BudgetReallocation).where(BudgetReallocation.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(BudgetReallocation.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(
                or_(
                    BudgetReallocation.from_phase_id == phase_id,
                    BudgetReallocation.to_phase_id == phase_id,
                )
            )
        if status is not None:
            stmt = stmt.where(BudgetReallocation.status == status)
        stmt = stmt.order_by(desc(BudgetReallocation.requested_at))
        return await fetch_page(self._session, stmt, page)


# --- Module Notes -----------------------------------------------------------
# Status transitions are made by `services.reallocations`; the repo only reads
# and inserts.
