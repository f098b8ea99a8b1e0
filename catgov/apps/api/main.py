from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catgov.apps.api.errors import (
    country_predicate_exception_handler,
    governance_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
    value_error_handler,
)
from catgov.apps.api.response import API_VERSION, REQUEST_ID_HEADER
from catgov.apps.api.routes.activation import router as activation_router
from catgov.apps.api.routes.admin_principals import router as admin_principals_router
from catgov.apps.api.routes.health import router as health_router
from catgov.apps.api.routes.pages import router as pages_router
from catgov.core.config import get_settings
from catgov.core.errors import CatgovError
from catgov.core.logging import configure_logging
from catgov.persistence.guards import CountryPredicateError
from catgov.services.audit import AuditEmitter, get_audit_emitter


logger = logging.getLogger(__name__)


def create_app(audit_emitter: AuditEmitter | None = None) -> FastAPI:
    configure_logging()
    emitter = audit_emitter or get_audit_emitter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Flush in-flight audit deliveries before the loop goes away.
        await emitter.drain()

    app = FastAPI(title=f"{get_settings().app_name} API", lifespan=lifespan)
    app.state.audit_emitter = emitter

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response

    app.add_exception_handler(CatgovError, governance_exception_handler)
    app.add_exception_handler(CountryPredicateError, country_predicate_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router, prefix=f"/{API_VERSION}")
    app.include_router(activation_router, prefix=f"/{API_VERSION}")
    app.include_router(pages_router, prefix=f"/{API_VERSION}")
    app.include_router(admin_principals_router, prefix=f"/{API_VERSION}")
    return app
