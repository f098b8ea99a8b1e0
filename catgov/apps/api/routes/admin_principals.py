from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.apps.api.deps import get_current_principal, get_db, get_emitter
from catgov.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from catgov.apps.api.response import SuccessEnvelope, success_response
from catgov.domain.models import AdminUser
from catgov.services.admin_users import create_admin_principal, update_admin_principal
from catgov.services.audit import AuditEmitter
from catgov.services.principals import AdminPrincipal


router = APIRouter(prefix="/admin-principals", tags=["admin-principals"], responses=DEFAULT_ERROR_RESPONSES)


class AdminPrincipalCreateRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    display_name: str = Field(min_length=1, max_length=128)
    role: str = "country_admin"
    country_code: str | None = Field(default=None, max_length=8)
    capabilities: list[str] | None = None
    is_active: bool = True

    model_config = {"extra": "forbid"}


class AdminPrincipalUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=128)
    role: str | None = None
    country_code: str | None = Field(default=None, max_length=8)
    capabilities: list[str] | None = None
    is_active: bool | None = None

    model_config = {"extra": "forbid"}


class AdminPrincipalResponse(BaseModel):
    id: str
    email: str
    display_name: str
    role: str
    country_code: str | None
    capabilities: list[str]
    is_active: bool


def _admin_payload(row: AdminUser) -> AdminPrincipalResponse:
    return AdminPrincipalResponse(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        role=row.role,
        country_code=row.country_code,
        capabilities=list(row.capabilities_json or []),
        is_active=row.is_active,
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessEnvelope[AdminPrincipalResponse],
)
async def post_admin_principal(
    request: Request,
    body: AdminPrincipalCreateRequest,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> dict:
    row = await create_admin_principal(
        db,
        actor=principal,
        email=body.email,
        display_name=body.display_name,
        requested_role=body.role,
        country_code=body.country_code,
        capabilities=body.capabilities,
        is_active=body.is_active,
        emitter=emitter,
    )
    return success_response(request=request, data=_admin_payload(row).model_dump())


@router.patch("/{admin_id}", response_model=SuccessEnvelope[AdminPrincipalResponse])
async def patch_admin_principal(
    request: Request,
    admin_id: str,
    body: AdminPrincipalUpdateRequest,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> dict:
    row = await update_admin_principal(
        db,
        actor=principal,
        admin_id=admin_id,
        display_name=body.display_name,
        requested_role=body.role,
        country_code=body.country_code,
        capabilities=body.capabilities,
        is_active=body.is_active,
        emitter=emitter,
    )
    return success_response(request=request, data=_admin_payload(row).model_dump())
