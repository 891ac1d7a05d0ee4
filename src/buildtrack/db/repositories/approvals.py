from __future__ import annotations

import uuid

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Approval


class ApprovalRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        related_id: uuid.UUID,
        related_model: str,
        action: str,
        previous_status: str,
        new_status: str,
        approved_by: str,
        approver_name: str = "",
        notes: str = "",
    ) -> Approval:
        record = Approval(
            related_id=related_id,
            related_model=related_model,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            approved_by=approved_by,
            approver_name=approver_name,
            notes=notes,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def list_for(self, related_id: uuid.UUID) -> list[Approval]:
        stmt = (
            select(Approval)
            .where(Approval.related_id == related_id)
            .order_by(desc(Approval.created_at))
        )
        return list((await self._session.execute(stmt)).scalars().all())
