from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from catgov.apps.api.response import error_response
from catgov.core.errors import (
    CatgovError,
    DuplicateAdmin,
    DuplicatePage,
    Forbidden,
    InvalidTransition,
    NotFound,
    StoreUnavailable,
)
from catgov.persistence.guards import CountryPredicateError


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def _governance_error(exc: CatgovError) -> tuple[int, str, dict[str, Any] | None]:
    # Map the engine's error taxonomy onto HTTP status, code and structured details.
    if isinstance(exc, Forbidden):
        details = {"operation": exc.operation, "resource": exc.resource, "country": exc.country}
        return status.HTTP_403_FORBIDDEN, "AUTH_FORBIDDEN", {k: v for k, v in details.items() if v}
    if isinstance(exc, InvalidTransition):
        return (
            status.HTTP_409_CONFLICT,
            "INVALID_TRANSITION",
            {"current": exc.current, "event": exc.event, "allowed": exc.allowed},
        )
    if isinstance(exc, StoreUnavailable):
        details: dict[str, Any] = {"operation": exc.operation, "retryable": True}
        if exc.operation in {"is_active", "is_active_batch", "list_overrides"}:
            details["activation"] = "unknown"
        return status.HTTP_503_SERVICE_UNAVAILABLE, "STORE_UNAVAILABLE", details
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND, "NOT_FOUND", {"kind": exc.kind, "key": exc.key}
    if isinstance(exc, (DuplicatePage, DuplicateAdmin)):
        return status.HTTP_409_CONFLICT, "CONFLICT", None
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", None


async def governance_exception_handler(request: Request, exc: CatgovError) -> JSONResponse:
    status_code, code, details = _governance_error(exc)
    if status_code >= 500:
        logger.warning("governance_error code=%s path=%s error=%s", code, request.url.path, exc)
    payload = error_response(request=request, code=code, message=str(exc), details=details)
    return JSONResponse(content=payload, status_code=status_code)


async def country_predicate_exception_handler(request: Request, exc: CountryPredicateError) -> JSONResponse:
    payload = error_response(request=request, code="COUNTRY_REQUIRED", message=exc.message)
    return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    # Domain normalizers raise ValueError for unsupported roles, scopes and entity types.
    payload = error_response(request=request, code="BAD_REQUEST", message=str(exc))
    return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(request: Request, exc: HTTPException | StarletteHTTPException) -> JSONResponse:
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.exception("unhandled_error path=%s", request.url.path, exc_info=exc)
    payload = error_response(request=request, code="INTERNAL_ERROR", message="Internal server error")
    return JSONResponse(content=payload, status_code=500)
