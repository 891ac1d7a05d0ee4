"""
buildtrack.db.repositories.professional

Repositories for professional service assignments and their activities.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import (
    ActivityStatus,
    ProfessionalActivity,
    ProfessionalService,
    ProfessionalServiceStatus,
    ProfessionalType,
)
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


def type_prefix(professional_type: ProfessionalType) -> str:
    return "ARCH" if professional_type is ProfessionalType.architect else "ENG"


class ProfessionalServiceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> ProfessionalService:
        service = ProfessionalService(**fields)
        self._session.add(service)
        await self._session.flush()
        return service

    async def get(
        self, service_id: uuid.UUID, *, for_update: bool = False
    ) -> ProfessionalService | None:
        service = await self._session.get(
            ProfessionalService, service_id, with_for_update=for_update
        )
        if service is None or service.deleted_at is not None:
            return None
        return service

    async def next_code(self, project_code: str, professional_type: ProfessionalType) -> str:
        prefix = f"{project_code}-{type_prefix(professional_type)}-"
        stmt = select(func.count()).where(ProfessionalService.professional_code.like(f"{prefix}%"))
        seq = int((await self._session.execute(stmt)).scalar_one()) + 1
        return f"{prefix}{seq:03d}"

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        professional_type: ProfessionalType | None = None,
        status: ProfessionalServiceStatus | None = None,
    ) -> Page[ProfessionalService]:
        stmt = select(ProfessionalService).where(ProfessionalService.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(ProfessionalService.project_id == project_id)
        if professional_type is not None:
            stmt = stmt.where(ProfessionalService.professional_type == professional_type)
        if status is not None:
            stmt = stmt.where(ProfessionalService.status == status)
        stmt = stmt.order_by(desc(ProfessionalService.created_at))
        return await fetch_page(self._session, stmt, page)


class ProfessionalActivityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> ProfessionalActivity:
        activity = ProfessionalActivity(**fields)
        self._session.add(activity)
        await self._session.flush()
        return activity

    async def get(
        self, activity_id: uuid.UUID, *, for_update: bool = False
    ) -> ProfessionalActivity | None:
        activity = await self._session.get(
            ProfessionalActivity, activity_id, with_for_update=for_update
        )
        if activity is None or activity.deleted_at is not None:
            return None
        return activity

    async def count_codes(self, professional_type: ProfessionalType) -> int:
        # Soft-deleted rows still hold their codes, so they count too.
        prefix = f"ACT-{type_prefix(professional_type)}-"
        stmt = select(func.count()).where(ProfessionalActivity.activity_code.like(f"{prefix}%"))
        return int((await self._session.execute(stmt)).scalar_one())

    async def search(
        self,
        page: PageRequest,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        professional_service_id: uuid.UUID | None = None,
        activity_type: str | None = None,
        status: ActivityStatus | None = None,
    ) -> Page[ProfessionalActivity]:
        stmt = select(ProfessionalActivity).where(ProfessionalActivity.deleted_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(ProfessionalActivity.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(ProfessionalActivity.phase_id == phase_id)
        if professional_service_id is not None:
            stmt = stmt.where(ProfessionalActivity.professional_service_id == professional_service_id)
        if activity_type:
            stmt = stmt.where(ProfessionalActivity.activity_type == activity_type)
        if status is not None:
            stmt = stmt.where(ProfessionalActivity.status == status)
        stmt = stmt.order_by(
            desc(ProfessionalActivity.activity_date), desc(ProfessionalActivity.created_at)
        )
        return await fetch_page(self._session, stmt, page)

    async def pending(self, *, limit: int = 100) -> list[ProfessionalActivity]:
        stmt = (
            select(ProfessionalActivity)
            .where(
                ProfessionalActivity.deleted_at.is_(None),
                ProfessionalActivity.status == ActivityStatus.pending_approval,
            )
            .order_by(ProfessionalActivity.activity_date)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())
