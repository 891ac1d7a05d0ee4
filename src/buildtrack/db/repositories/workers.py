"""
buildtrack.db.repositories.workers

Repository for `Worker` profiles.

Responsibilities:
- Create/fetch workers by id or employee id (soft-deleted rows hidden).
- Filter and page the register, including by skill, in SQL.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import String, cast, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Worker, WorkerStatus, WorkerType
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class WorkerRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Worker:
        worker = Worker(**fields)
        self._session.add(worker)
        await self._session.flush()
        return worker

    async def get(self, worker_id: uuid.UUID) -> Worker | None:
        worker = await self._session.get(Worker, worker_id)
        if worker is None or worker.deleted_at is not None:
            return None
        return worker

    async def get_by_employee_id(self, employee_id: str) -> Worker | None:
        stmt = select(Worker).where(Worker.employee_id == employee_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def search(
        self,
        page: PageRequest,
        *,
        status: WorkerStatus | None = None,
        worker_type: WorkerType | None = None,
        skill_type: str | None = None,
        search: str | None = None,
    ) -> Page[Worker]:
        stmt = select(Worker).where(Worker.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(Worker.status == status)
        if worker_type is not None:
            stmt = stmt.where(Worker.worker_type == worker_type)
        if skill_type:
            # skill_types is a JSON list; match the quoted element in its text form.
            stmt = stmt.where(cast(Worker.skill_types, String).like(f'%"{skill_type}"%'))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Worker.worker_name.ilike(pattern),
                    Worker.employee_id.ilike(pattern),
                    Worker.phone.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Worker.worker_name)
        return await fetch_page(self._session, stmt, page)


# --- Module Notes -----------------------------------------------------------
# JSON columns have no portable containment operator, so the skill filter matches
# the serialized list text.
