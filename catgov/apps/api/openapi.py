from __future__ import annotations

from typing import Any

from catgov.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _response("Bad request", _error_example(code="BAD_REQUEST", message="Bad request")),
    401: _response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="Missing admin principal"),
    ),
    403: _response(
        "Forbidden",
        _error_example(code="AUTH_FORBIDDEN", message="you do not have permission to modify data for LK"),
    ),
    404: _response("Not found", _error_example(code="NOT_FOUND", message="content_page not found: p-1")),
    409: _response(
        "Conflict",
        _error_example(
            code="INVALID_TRANSITION",
            message="cannot publish a page in status draft; allowed actions: submit, edit, delete",
            details={"current": "draft", "event": "publish", "allowed": ["submit", "edit", "delete"]},
        ),
    ),
    503: _response(
        "Store unavailable",
        _error_example(
            code="STORE_UNAVAILABLE",
            message="store unavailable during is_active_batch: deadline exceeded",
            details={"retryable": True, "activation": "unknown"},
        ),
    ),
}
