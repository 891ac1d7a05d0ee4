"""
buildtrack.errors

Typed exception hierarchy for the service.

Responsibilities:
- Give every failure a class, an HTTP status and a machine-readable code.
- Carry structured validation errors so the API layer can render them without
  parsing messages.

Hierarchy:

    BuildTrackError
    +-- ValidationFailed        400
    +-- AuthenticationRequired  401
    +-- PermissionDenied        403
    +-- NotFound                404
    +-- Conflict                409
"""

from __future__ import annotations

from typing import Any


class BuildTrackError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationFailed(BuildTrackError):
    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.errors = list(errors or [])
        if self.errors:
            self.details.setdefault("errors", self.errors)

    @classmethod
    def from_errors(cls, errors: list[str]) -> ValidationFailed:
        return cls(f"Validation failed: {', '.join(errors)}", errors=errors)


class AuthenticationRequired(BuildTrackError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDenied(BuildTrackError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(BuildTrackError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(BuildTrackError):
    status_code = 409
    code = "CONFLICT"


# --- Module Notes -----------------------------------------------------------
# Services raise these; `api.envelope` owns the translation into HTTP responses.
