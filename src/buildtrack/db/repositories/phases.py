"""
buildtrack.db.repositories.phases

Repository for `Phase` entities.

Responsibilities:
- Create, fetch and list phases per project (soft-deleted rows hidden).
- Answer uniqueness questions for phase codes and sequences.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Phase, PhaseStatus


class PhaseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Phase:
        phase = Phase(**fields)
        self._session.add(phase)
        await self._session.flush()
        return phase

    async def get(self, phase_id: uuid.UUID, *, for_update: bool = False) -> Phase | None:
        phase = await self._session.get(Phase, phase_id, with_for_update=for_update)
        if phase is None or phase.deleted_at is not None:
            return None
        return phase

    async def get_in_project(self, phase_id: uuid.UUID, project_id: uuid.UUID) -> Phase | None:
        phase = await self.get(phase_id)
        if phase is None or phase.project_id != project_id:
            return None
        return phase

    async def list_for_project(
        self, project_id: uuid.UUID, *, status: PhaseStatus | None = None
    ) -> list[Phase]:
        stmt = select(Phase).where(Phase.project_id == project_id, Phase.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(Phase.status == status)
        stmt = stmt.order_by(Phase.sequence)
        return list((await self._session.execute(stmt)).scalars().all())

    async def by_ids(self, phase_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Phase]:
        ids = list(set(phase_ids))
        if not ids:
            return {}
        stmt = select(Phase).where(Phase.id.in_(ids), Phase.deleted_at.is_(None))
        return {p.id: p for p in (await self._session.execute(stmt)).scalars().all()}

    async def next_sequence(self, project_id: uuid.UUID) -> int:
        stmt = select(func.coalesce(func.max(Phase.sequence), 0)).where(
            Phase.project_id == project_id, Phase.deleted_at.is_(None)
        )
        return int((await self._session.execute(stmt)).scalar_one()) + 1

    async def code_taken(
        self, project_id: uuid.UUID, phase_code: str, *, exclude_id: uuid.UUID | None = None
    ) -> bool:
        stmt = select(Phase.id).where(
            Phase.project_id == project_id,
            Phase.phase_code == phase_code,
            Phase.deleted_at.is_(None),
        )
        if exclude_id is not None:
            stmt = stmt.where(Phase.id != exclude_id)
        return (await self._session.execute(stmt.limit(1))).first() is not None

    async def sequence_taken(
        self, project_id: uuid.UUID, sequence: int, *, exclude_id: uuid.UUID | None = None
    ) -> bool:
        stmt = select(Phase.id).where(
            Phase.project_id == project_id,
            Phase.sequence == sequence,
            Phase.deleted_at.is_(None),
        )
        if exclude_id is not None:
            stmt = stmt.where(Phase.id != exclude_id)
        return (await self._session.execute(stmt.limit(1))).first() is not None

    async def dependents_of(self, phase: Phase) -> list[Phase]:
        # depends_on is a JSON list, so the membership test runs in Python.
        siblings = await self.list_for_project(phase.project_id)
        key = str(phase.id)
        return [p for p in siblings if key in (p.depends_on or [])]
