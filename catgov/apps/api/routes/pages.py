from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.apps.api.deps import get_current_principal, get_db, get_emitter
from catgov.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from catgov.apps.api.response import success_response
from catgov.domain.catalog import PageEvent, PageScope, PageStatus
from catgov.services import pages as pages_service
from catgov.services.audit import AuditEmitter
from catgov.services.principals import AdminPrincipal


router = APIRouter(prefix="/pages", tags=["pages"], responses=DEFAULT_ERROR_RESPONSES)


class PageCreateRequest(BaseModel):
    slug: str = Field(min_length=1, max_length=128)
    title: str = Field(min_length=1, max_length=256)
    scope: Literal["centralized", "country_specific"]
    content: str = ""
    owner_country: str | None = Field(default=None, max_length=8)
    requires_approval: bool | None = None
    metadata: dict[str, Any] | None = None

    model_config = {"extra": "forbid"}


class PageStatusRequest(BaseModel):
    event: Literal["submit", "approve", "reject", "publish", "edit", "delete"]
    title: str | None = Field(default=None, max_length=256)
    content: str | None = None

    model_config = {"extra": "forbid"}


def _page_payload(page, actor: AdminPrincipal) -> dict[str, Any]:
    payload = pages_service.page_to_dict(page)
    payload["allowed_events"] = pages_service.allowed_events(page, actor)
    return payload


@router.get("")
async def list_pages(
    request: Request,
    status_filter: PageStatus | None = Query(default=None, alias="status"),
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    pages = await pages_service.list_pages_for(db, actor=principal, status=status_filter)
    return success_response(request=request, data={"items": [_page_payload(page, principal) for page in pages]})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_page(
    request: Request,
    body: PageCreateRequest,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> dict:
    page = await pages_service.create_page(
        db,
        author=principal,
        slug=body.slug,
        title=body.title,
        scope=PageScope(body.scope),
        content=body.content,
        owner_country=body.owner_country,
        requires_approval=body.requires_approval,
        metadata=body.metadata,
        emitter=emitter,
    )
    return success_response(request=request, data=_page_payload(page, principal))


@router.get("/{page_id}")
async def get_page(
    request: Request,
    page_id: str,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    page = await pages_service.get_page_for(db, page_id=page_id, actor=principal)
    return success_response(request=request, data=_page_payload(page, principal))


@router.put("/{page_id}/status")
async def put_page_status(
    request: Request,
    page_id: str,
    body: PageStatusRequest,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> Any:
    page = await pages_service.apply_event(
        db,
        page_id=page_id,
        event=PageEvent(body.event),
        actor=principal,
        title=body.title,
        content=body.content,
        emitter=emitter,
    )
    if page is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return success_response(request=request, data=_page_payload(page, principal))


@router.delete("/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_page(
    page_id: str,
    principal: AdminPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    emitter: AuditEmitter = Depends(get_emitter),
) -> Response:
    await pages_service.apply_event(
        db,
        page_id=page_id,
        event=PageEvent.DELETE,
        actor=principal,
        emitter=emitter,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
