"""
tests.conftest

Shared fixtures: an app bound to a throwaway SQLite file, an HTTP client, and
bearer-token helpers for each role.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI

from buildtrack.api.app import create_app
from buildtrack.auth.jwt import JwtConfig, issue_token
from buildtrack.settings import Settings
from helpers import create_project


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'buildtrack.db'}")


@pytest.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx 0.28 ASGITransport does not manage lifespan automatically; do it explicitly.
    await app.router.startup()
    try:
        yield app
    finally:
        await app.router.shutdown()


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth(settings: Settings) -> Callable[..., dict[str, str]]:
    cfg = JwtConfig.from_settings(settings)

    def _headers(role: str = "owner", subject: str | None = None) -> dict[str, str]:
        token = issue_token(
            cfg=cfg, subject=subject or f"{role}-user", role=role, name=f"{role.title()} User"
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def owner(auth) -> dict[str, str]:
    return auth("owner")


@pytest.fixture
async def project(client: httpx.AsyncClient, owner: dict[str, str]) -> dict[str, Any]:
    return await create_project(client, owner)
