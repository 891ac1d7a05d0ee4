from __future__ import annotations

from pydantic import BaseModel, Field


class DecisionIn(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class RejectionIn(BaseModel):
    # Blank reasons are rejected by the services.
    reason: str = Field(default="", max_length=2000)
