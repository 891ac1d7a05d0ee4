"""
buildtrack.api.envelope

Uniform response envelope.

Responsibilities:
- Wrap successful payloads as `{"success": true, "data": ..., "message": ...}`.
- Serialize ORM rows into JSON-ready dicts.
- Register exception handlers that render every failure as
  `{"success": false, "error": ..., "code": ..., "details": ...}`.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.status import HTTP_200_OK, HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from buildtrack.db.base import Base
from buildtrack.errors import BuildTrackError
from buildtrack.observability.logging import get_logger

log = get_logger(__name__)


def as_dict(row: Base, **extra: Any) -> dict[str, Any]:
    data = {col.key: getattr(row, col.key) for col in row.__table__.columns}
    data.update(extra)
    return data


def ok(
    data: Any = None,
    message: str | None = None,
    *,
    status_code: int = HTTP_200_OK,
    **extra: Any,
) -> JSONResponse:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def fail(
    message: str, *, status_code: int, code: str, details: dict[str, Any] | None = None
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def _buildtrack_error(request: Request, exc: BuildTrackError) -> JSONResponse:
    log.info(
        "request_rejected",
        status_code=exc.status_code,
        code=exc.code,
        error=exc.message,
    )
    return fail(exc.message, status_code=exc.status_code, code=exc.code, details=exc.details)


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    return fail(str(exc.detail), status_code=exc.status_code, code=f"HTTP_{exc.status_code}")


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return fail(
        f"Validation failed: {', '.join(errors)}",
        status_code=HTTP_400_BAD_REQUEST,
        code="VALIDATION_FAILED",
        details={"errors": errors},
    )


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", error_type=type(exc).__name__)
    return fail(
        "Internal server error",
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_ERROR",
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BuildTrackError, _buildtrack_error)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unexpected_error)


# --- Module Notes -----------------------------------------------------------
# Starlette's HTTPException is the base of FastAPI's; handling it covers routing
# 404/405 responses as well as explicit raises.
