"""
buildtrack.db.repositories.projects

Repositories for projects, their finance snapshot and capital contributions.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from buildtrack.db.models import (
    CapitalContribution,
    FundingType,
    Phase,
    ProfessionalService,
    Project,
    ProjectFinance,
    ProjectStatus,
)


class ProjectRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> Project:
        project = Project(**fields)
        self._session.add(project)
        await self._session.flush()
        return project

    async def get(self, project_id: uuid.UUID) -> Project | None:
        return await self._session.get(Project, project_id)

    async def get_by_code(self, project_code: str) -> Project | None:
        stmt = select(Project).where(Project.project_code == project_code)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list(
        self,
        *,
        status: ProjectStatus | None = None,
        archived: bool = False,
        search: str | None = None,
    ) -> list[Project]:
        stmt = select(Project)
        # An explicit status wins over the archive toggle.
        if status is not None:
            stmt = stmt.where(Project.status == status)
        elif archived:
            stmt = stmt.where(Project.status == ProjectStatus.archived)
        else:
            stmt = stmt.where(Project.status != ProjectStatus.archived)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Project.project_name.ilike(pattern),
                    Project.project_code.ilike(pattern),
                    Project.location.ilike(pattern),
                )
            )
        stmt = stmt.order_by(desc(Project.created_at))
        return list((await self._session.execute(stmt)).scalars().all())

    async def delete(self, project: Project) -> None:
        for model in (CapitalContribution, ProjectFinance, Phase, ProfessionalService):
            await self._session.execute(delete(model).where(model.project_id == project.id))
        await self._session.delete(project)
        await self._session.flush()


class ProjectFinanceRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_project(self, project_id: uuid.UUID) -> ProjectFinance | None:
        stmt = select(ProjectFinance).where(ProjectFinance.project_id == project_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def upsert(self, project_id: uuid.UUID, values: dict[str, Any]) -> ProjectFinance:
        finance = await self.get_for_project(project_id)
        if finance is None:
            finance = ProjectFinance(project_id=project_id, **values)
            self._session.add(finance)
        else:
            for key, value in values.items():
                setattr(finance, key, value)
        await self._session.flush()
        return finance


class CapitalRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, **fields: Any) -> CapitalContribution:
        contribution = CapitalContribution(**fields)
        self._session.add(contribution)
        await self._session.flush()
        return contribution

    async def list_for_project(self, project_id: uuid.UUID) -> list[CapitalContribution]:
        stmt = (
            select(CapitalContribution)
            .where(CapitalContribution.project_id == project_id)
            .order_by(desc(CapitalContribution.contributed_on))
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def totals(self, project_id: uuid.UUID) -> dict[str, float]:
        stmt = (
            select(CapitalContribution.funding_type, func.coalesce(func.sum(CapitalContribution.amount), 0.0))
            .where(CapitalContribution.project_id == project_id)
            .group_by(CapitalContribution.funding_type)
        )
        sums = {row[0]: float(row[1]) for row in (await self._session.execute(stmt)).all()}
        investors_stmt = select(func.count(func.distinct(CapitalContribution.investor_name))).where(
            CapitalContribution.project_id == project_id
        )
        investor_count = int((await self._session.execute(investors_stmt)).scalar_one())
        loans = sums.get(FundingType.loan, 0.0)
        equity = sums.get(FundingType.equity, 0.0)
        return {
            "total_invested": loans + equity,
            "total_loans": loans,
            "total_equity": equity,
            "investor_count": investor_count,
        }
