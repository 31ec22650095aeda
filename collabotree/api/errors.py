"""
Exception handlers producing the JSON error envelope::

    {
      "success": false,
      "error": "<kind>",
      "message": "<human-readable reason>",
      "details": [{"field": "...", "message": "..."}],
      "data": {...unchanged entity snapshot, when relevant...}
    }

Domain errors keep their own status code; request validation failures are
reported as 400 ``ValidationError`` with field-level details; anything
unexpected becomes a generic 500 ``Internal`` without leaking internals.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from collabotree.core.exceptions import DomainError

logger = logging.getLogger(__name__)

_HTTP_KINDS: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "ValidationError",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowed",
    status.HTTP_409_CONFLICT: "Conflict",
}


def error_body(
    kind: str,
    message: str,
    *,
    details: Optional[list[dict[str, Any]]] = None,
    current: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return {
        "success": False,
        "error": kind,
        "message": message,
        "details": details or [],
        "data": jsonable_encoder(current) if current is not None else None,
    }


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            exc.kind, exc.message, details=exc.details, current=exc.current
        ),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"field": _field_path(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("ValidationError", "Invalid request data", details=details),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    kind = _HTTP_KINDS.get(exc.status_code, "Error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal", "An unexpected error occurred."),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
