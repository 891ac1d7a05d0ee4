"""
buildtrack.db.repositories.phase_tracking

Repositories for a phase's milestones and quality checkpoints.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import CheckpointStatus, PhaseMilestone, QualityCheckpoint


class MilestoneRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> PhaseMilestone:
        milestone = PhaseMilestone(**fields)
        self._session.add(milestone)
        await self._session.flush()
        return milestone

    async def get_in_phase(
        self, milestone_id: uuid.UUID, phase_id: uuid.UUID
    ) -> PhaseMilestone | None:
        milestone = await self._session.get(PhaseMilestone, milestone_id)
        if milestone is None or milestone.phase_id != phase_id:
            return None
        return milestone

    async def list_for_phase(self, phase_id: uuid.UUID) -> list[PhaseMilestone]:
        stmt = (
            select(PhaseMilestone)
            .where(PhaseMilestone.phase_id == phase_id)
            # Undated milestones sort last.
            .order_by(
                PhaseMilestone.target_date.is_(None),
                PhaseMilestone.target_date,
                PhaseMilestone.created_at,
            )
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete(self, milestone: PhaseMilestone) -> None:
        await self._session.delete(milestone)
        await self._session.flush()


class QualityCheckpointRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> QualityCheckpoint:
        checkpoint = QualityCheckpoint(**fields)
        self._session.add(checkpoint)
        await self._session.flush()
        return checkpoint

    async def get_in_phase(
        self, checkpoint_id: uuid.UUID, phase_id: uuid.UUID
    ) -> QualityCheckpoint | None:
        checkpoint = await self._session.get(QualityCheckpoint, checkpoint_id)
        if checkpoint is None or checkpoint.phase_id != phase_id:
            return None
        return checkpoint

    async def list_for_phase(
        self, phase_id: uuid.UUID, *, status: CheckpointStatus | None = None
    ) -> list[QualityCheckpoint]:
        stmt = select(QualityCheckpoint).where(QualityCheckpoint.phase_id == phase_id)
        if status is not None:
            stmt = stmt.where(QualityCheckpoint.status == status)
        stmt = stmt.order_by(QualityCheckpoint.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete(self, checkpoint: QualityCheckpoint) -> None:
        await self._session.delete(checkpoint)
        await self._session.flush()


# --- Module Notes -----------------------------------------------------------
# Milestones and checkpoints are hard-deleted; the audit trail keeps a snapshot.
