from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from catgov.apps.api.deps import (
    get_current_principal,
    get_decision_cache,
    get_emitter,
    get_override_store,
)
from catgov.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from catgov.apps.api.response import SuccessEnvelope, success_response
from catgov.domain.catalog import normalize_entity_type
from catgov.domain.models import ActivationOverride
from catgov.persistence.guards import require_country_code
from catgov.services.activation import ActivationOverrideStore
from catgov.services.audit import AuditEmitter
from catgov.services.decision_cache import DecisionCache
from catgov.services.principals import AdminPrincipal
from catgov.services.scope_policy import can_read, ensure_allowed


router = APIRouter(tags=["activation"], responses=DEFAULT_ERROR_RESPONSES)


class ActivationStatusResponse(BaseModel):
    entity_type: str
    country_code: str
    statuses: dict[str, bool]


class ActivationOverrideRequest(BaseModel):
    entity_type: str = Field(min_length=1, max_length=64)
    entity_id: str = Field(min_length=1, max_length=128)
    country_code: str = Field(min_length=2, max_length=8)
    is_active: bool
    entity_name: str | None = Field(default=None, max_length=256)

    # Reject unknown fields so callers cannot smuggle audit columns.
    model_config = {"extra": "forbid"}


class ActivationOverrideResponse(BaseModel):
    entity_type: str
    entity_id: str
    country_code: str
    is_active: bool
    updated_by: str
    updated_at: datetime | None
    entity_name: str | None


class ActivationOverrideListResponse(BaseModel):
    items: list[ActivationOverrideResponse]


def _override_payload(row: ActivationOverride) -> ActivationOverrideResponse:
    return ActivationOverrideResponse(
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        country_code=row.country_code,
        is_active=row.is_active,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
        entity_name=row.entity_name,
    )


@router.get("/activation-status", response_model=SuccessEnvelope[ActivationStatusResponse])
async def get_activation_status(
    request: Request,
    entity_type: str = Query(min_length=1),
    country_code: str = Query(min_length=2),
    entity_ids: list[str] | None = Query(default=None),
    principal: AdminPrincipal = Depends(get_current_principal),
    cache: DecisionCache = Depends(get_decision_cache),
    emitter: AuditEmitter = Depends(get_emitter),
) -> dict:
    resolved_type = normalize_entity_type(entity_type)
    country = require_country_code(country_code)
    ensure_allowed(
        can_read(principal, country),
        principal=principal,
        operation="activation.read",
        resource_key=f"{resolved_type}:*:{country}",
        country=country,
        emitter=emitter,
    )
    statuses = await cache.is_active_batch(resolved_type, entity_ids or [], country)
    payload = ActivationStatusResponse(entity_type=resolved_type, country_code=country, statuses=statuses)
    return success_response(request=request, data=payload.model_dump())


@router.get("/activation-overrides", response_model=SuccessEnvelope[ActivationOverrideListResponse])
async def list_activation_overrides(
    request: Request,
    entity_type: str = Query(min_length=1),
    country_code: str = Query(min_length=2),
    include_inactive: bool = Query(default=True),
    principal: AdminPrincipal = Depends(get_current_principal),
    store: ActivationOverrideStore = Depends(get_override_store),
    emitter: AuditEmitter = Depends(get_emitter),
) -> dict:
    country = require_country_code(country_code)
    ensure_allowed(
        can_read(principal, country),
        principal=principal,
        operation="activation.read",
        resource_key=f"{normalize_entity_type(entity_type)}:*:{country}",
        country=country,
        emitter=emitter,
    )
    rows = await store.list_overrides(entity_type, country, include_inactive=include_inactive).to_list()
    payload = ActivationOverrideListResponse(items=[_override_payload(row) for row in rows])
    return success_response(request=request, data=payload.model_dump(mode="json"))


@router.put("/activation-overrides", response_model=SuccessEnvelope[ActivationOverrideResponse])
async def put_activation_override(
    request: Request,
    body: ActivationOverrideRequest,
    principal: AdminPrincipal = Depends(get_current_principal),
    cache: DecisionCache = Depends(get_decision_cache),
) -> dict:
    row = await cache.upsert(
        body.entity_type,
        body.entity_id,
        body.country_code,
        body.is_active,
        principal,
        entity_name=body.entity_name,
    )
    return success_response(request=request, data=_override_payload(row).model_dump(mode="json"))
