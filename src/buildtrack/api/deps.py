"""
buildtrack.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and paging.
- Encapsulate app.state access patterns (settings/engine/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buildtrack.db.repositories.paging import PageRequest
from buildtrack.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # The app factory pins its settings on app.state; fall back to the process-wide ones.
    return getattr(request.app.state, "settings", None) or get_settings()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created on app startup in `buildtrack.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(settings_dep),
) -> PageRequest:
    size = min(limit or settings.default_page_size, settings.max_page_size)
    return PageRequest(page=page, limit=size)


def csv_list(raw: str | None) -> list[str]:
    """Split a `a,b,c` query value into its non-empty parts."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


# --- Module Notes -----------------------------------------------------------
# Sessions are opened per request; services decide when to commit.
