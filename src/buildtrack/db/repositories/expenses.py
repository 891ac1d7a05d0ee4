"""
buildtrack.db.repositories.expenses

Repository for `Expense` entities.

Responsibilities:
- Create/fetch/list expenses; archived rows are hidden unless requested.
- Generate sequential daily expense codes.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import Expense, ExpenseStatus
from buildtrack.db.repositories.paging import Page, PageRequest, fetch_page


class ExpenseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Expense:
        expense = Expense(**fields)
        self._session.add(expense)
        await self._session.flush()
        return expense

    async def get(
        self,
        expense_id: uuid.UUID,
        *,
        include_archived: bool = False,
        for_update: bool = False,
    ) -> Expense | None:
        expense = await self._session.get(Expense, expense_id, with_for_update=for_update)
        if expense is None:
            return None
        if expense.archived_at is not None and not include_archived:
            return None
        return expense

    async def next_code(self, on: date) -> str:
        prefix = f"EXP-{on:%Y%m%d}-"
        # Deleted rows leave gaps, so continue from the highest suffix rather than the count.
        stmt = select(func.max(Expense.expense_code)).where(Expense.expense_code.like(f"{prefix}%"))
        last = (await self._session.execute(stmt)).scalar_one_or_none()
        seq = int(last.removeprefix(prefix)) + 1 if last else 1
        return f"{prefix}{seq:04d}"

    def _filtered(
        self,
        *,
        project_id: uuid.UUID | None = None,
        phase_id: uuid.UUID | None = None,
        statuses: list[ExpenseStatus] | None = None,
        category: str | None = None,
        archived: bool = False,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
    ):
        stmt = select(Expense)
        if archived:
            stmt = stmt.where(Expense.archived_at.is_not(None))
        else:
            stmt = stmt.where(Expense.archived_at.is_(None))
        if project_id is not None:
            stmt = stmt.where(Expense.project_id == project_id)
        if phase_id is not None:
            stmt = stmt.where(Expense.phase_id == phase_id)
        if statuses:
            stmt = stmt.where(Expense.status.in_(statuses))
        if category:
            stmt = stmt.where(Expense.category == category)
        if date_from is not None:
            stmt = stmt.where(Expense.expense_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Expense.expense_date <= date_to)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                Expense.description.ilike(pattern)
                | Expense.vendor.ilike(pattern)
                | Expense.expense_code.ilike(pattern)
            )
        return stmt.order_by(desc(Expense.expense_date), desc(Expense.created_at))

    async def search(self, page: PageRequest, **filters: Any) -> Page[Expense]:
        return await fetch_page(self._session, self._filtered(**filters), page)

    async def list_all(self, **filters: Any) -> list[Expense]:
        return list((await self._session.execute(self._filtered(**filters))).scalars().all())

    async def count_active_for_phase(self, phase_id: uuid.UUID) -> int:
        stmt = select(func.count()).where(
            Expense.phase_id == phase_id, Expense.archived_at.is_(None)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def count_for_project(self, project_id: uuid.UUID) -> int:
        stmt = select(func.count()).where(Expense.project_id == project_id)
        return int((await self._session.execute(stmt)).scalar_one())

    async def delete(self, expense: Expense) -> None:
        await self._session.delete(expense)
        await self._session.flush()


# --- Module Notes -----------------------------------------------------------
# Expense codes are unique; `next_code` must run in the same transaction as the
# insert that uses it.
