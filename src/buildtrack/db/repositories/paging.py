"""
buildtrack.db.repositories.paging

Offset pagination shared by the list queries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    request: PageRequest

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.request.limit) if self.request.limit else 0

    def meta(self) -> dict[str, Any]:
        return {
            "page": self.request.page,
            "limit": self.request.limit,
            "total": self.total,
            "pages": self.pages,
        }


async def fetch_page(session: AsyncSession, stmt: Select, request: PageRequest) -> Page[Any]:
    # Count against the filtered statement before ordering/limits are applied.
    total_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int((await session.execute(total_stmt)).scalar_one())
    rows = await session.execute(stmt.offset(request.offset).limit(request.limit))
    return Page(items=list(rows.scalars().all()), total=total, request=request)


# --- Module Notes -----------------------------------------------------------
# The total is counted over the filtered statement before offset/limit is applied.
