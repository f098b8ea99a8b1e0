from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.config import get_settings
from catgov.core.errors import NotFound
from catgov.persistence.db import get_session
from catgov.services.activation import ActivationOverrideStore
from catgov.services.audit import AuditEmitter, get_audit_emitter
from catgov.services.decision_cache import DecisionCache
from catgov.services.principals import AdminPrincipal, resolve_principal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


def get_emitter(request: Request) -> AuditEmitter:
    emitter = getattr(request.app.state, "audit_emitter", None)
    return emitter if emitter is not None else get_audit_emitter()


def _auth_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "AUTH_UNAUTHORIZED", "message": message},
    )


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AdminPrincipal:
    # The upstream auth layer has already validated credentials and forwards the admin id.
    settings = get_settings()
    admin_id = (request.headers.get(settings.principal_header) or "").strip()
    if not admin_id:
        raise _auth_error(f"{settings.principal_header} header is required")
    try:
        principal = await resolve_principal(db, admin_id)
    except NotFound as exc:
        raise _auth_error("Unknown admin principal") from exc
    request.state.principal_id = principal.id
    return principal


def get_override_store(
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> ActivationOverrideStore:
    return ActivationOverrideStore(db, emitter=emitter)


def get_decision_cache(
    store: ActivationOverrideStore = Depends(get_override_store),
) -> DecisionCache:
    # Fresh cache per request so decisions never outlive the batch they were resolved for.
    return DecisionCache(store)
