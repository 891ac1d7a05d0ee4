"""
buildtrack.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for every layer (prefix `BUILDTRACK_`).
- Hide secrets from repr/logging (JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BUILDTRACK_", case_sensitive=False)

    # dev/test create tables on startup; prod relies on Alembic.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "buildtrack"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "buildtrack"
    jwt_audience: str = "buildtrack-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./buildtrack.db"

    # Listing
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Domain toggles
    require_project_budget: bool = False
    currency: str = "KES"
    audit_log_limit: int = 50


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Tests build `Settings(env="test", ...)` directly instead of going through the
# cached `get_settings()`.
