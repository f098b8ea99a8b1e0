"""Content page lifecycle: draft -> pending -> approved -> published, or rejected.

Centralized pages affect every country, so a CountryAdmin may author and submit them
but they always route through ``pending`` for a SuperAdmin decision.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.config import get_settings
from catgov.core.errors import DuplicatePage, Forbidden, InvalidTransition, NotFound, StoreUnavailable
from catgov.domain.catalog import PageEvent, PageScope, PageStatus
from catgov.domain.models import ContentPage
from catgov.persistence.guards import normalize_country, require_country_code
from catgov.persistence.repos import pages as pages_repo
from catgov.services.audit import DECISION_ALLOW, AuditEmitter
from catgov.services.principals import AdminPrincipal
from catgov.services.scope_policy import can_read, can_write_resource, ensure_allowed


logger = logging.getLogger(__name__)

_EDITABLE_FROM = {
    PageStatus.DRAFT,
    PageStatus.PENDING,
    PageStatus.APPROVED,
    PageStatus.PUBLISHED,
    PageStatus.REJECTED,
}

# Legal (from, event) pairs; any pair outside this set is an invalid transition.
_TRANSITIONS: frozenset[tuple[PageStatus, PageEvent]] = frozenset(
    {
        (PageStatus.DRAFT, PageEvent.SUBMIT),
        (PageStatus.PENDING, PageEvent.APPROVE),
        (PageStatus.PENDING, PageEvent.REJECT),
        (PageStatus.APPROVED, PageEvent.PUBLISH),
        *((status, PageEvent.EDIT) for status in _EDITABLE_FROM),
        *((status, PageEvent.DELETE) for status in PageStatus),
    }
)

_SUPER_ADMIN_EVENTS = {PageEvent.APPROVE, PageEvent.REJECT, PageEvent.PUBLISH}
_FIXED_TARGETS = {
    PageEvent.APPROVE: PageStatus.APPROVED,
    PageEvent.REJECT: PageStatus.REJECTED,
    PageEvent.PUBLISH: PageStatus.PUBLISHED,
}
_OWNER_DELETABLE = {PageStatus.DRAFT, PageStatus.REJECTED}
_REAPPROVE_ON_EDIT = {PageStatus.APPROVED, PageStatus.PUBLISHED}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _page_key(page: ContentPage | str) -> str:
    page_id = page if isinstance(page, str) else page.id
    return f"content_page:{page_id}"


def _status(page: ContentPage) -> PageStatus:
    return PageStatus(page.status)


def _scope(page: ContentPage) -> PageScope:
    return PageScope(page.scope)


def initial_requires_approval(
    author: AdminPrincipal,
    scope: PageScope | str,
    requested: bool | None = None,
) -> bool:
    # Centralized pages from a country admin always need approval.
    resolved_scope = PageScope(scope)
    if not author.is_super_admin():
        if resolved_scope is PageScope.CENTRALIZED:
            return True
        return True if requested is None else bool(requested)
    if requested is not None:
        return bool(requested)
    if resolved_scope is PageScope.CENTRALIZED:
        return get_settings().super_admin_centralized_requires_approval
    return False


def _is_owner(actor: AdminPrincipal, page: ContentPage) -> bool:
    if actor.is_super_admin() or _scope(page) is PageScope.CENTRALIZED:
        return True
    return page.owner_country == actor.home_country()


def _can_delete(actor: AdminPrincipal, page: ContentPage) -> bool:
    # Published and centralized pages have cross-tenant impact.
    if actor.is_super_admin():
        return True
    return (
        _scope(page) is PageScope.COUNTRY_SPECIFIC
        and page.owner_country == actor.home_country()
        and _status(page) in _OWNER_DELETABLE
    )


def actor_may(actor: AdminPrincipal, page: ContentPage, event: PageEvent | str) -> bool:
    resolved = PageEvent(event)
    if resolved in _SUPER_ADMIN_EVENTS:
        return actor.is_super_admin()
    if resolved is PageEvent.SUBMIT:
        return _is_owner(actor, page)
    if resolved is PageEvent.EDIT:
        return can_write_resource(actor, page.owner_country)
    if resolved is PageEvent.DELETE:
        return _can_delete(actor, page)
    return False


def allowed_events(page: ContentPage, actor: AdminPrincipal) -> list[str]:
    # Events the actor may fire next from the page's current status.
    current = _status(page)
    return [
        event.value
        for event in PageEvent
        if (current, event) in _TRANSITIONS and actor_may(actor, page, event)
    ]


def page_to_dict(page: ContentPage) -> dict[str, Any]:
    return {
        "id": page.id,
        "slug": page.slug,
        "title": page.title,
        "content": page.content,
        "scope": page.scope,
        "owner_country": page.owner_country,
        "status": page.status,
        "requires_approval": page.requires_approval,
        "revision": page.revision,
        "metadata": page.metadata_json or {},
        "created_by": page.created_by,
        "updated_by": page.updated_by,
        "created_at": page.created_at.isoformat() if page.created_at else None,
        "updated_at": page.updated_at.isoformat() if page.updated_at else None,
    }


async def _commit(session: AsyncSession, operation: str) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreUnavailable(operation, type(exc).__name__) from exc


async def get_page_for(session: AsyncSession, *, page_id: str, actor: AdminPrincipal) -> ContentPage:
    page = await pages_repo.get_page(session, page_id)
    if page is None or not can_read(actor, page.owner_country):
        # Pages outside the actor's scope are reported as absent.
        raise NotFound("content_page", page_id)
    return page


async def list_pages_for(
    session: AsyncSession,
    *,
    actor: AdminPrincipal,
    status: PageStatus | str | None = None,
) -> list[ContentPage]:
    resolved_status = PageStatus(status).value if status is not None else None
    return await pages_repo.list_pages(
        session,
        country_code=None if actor.is_super_admin() else actor.home_country(),
        status=resolved_status,
    )


async def create_page(
    session: AsyncSession,
    *,
    author: AdminPrincipal,
    slug: str,
    title: str,
    scope: PageScope | str,
    content: str = "",
    owner_country: str | None = None,
    requires_approval: bool | None = None,
    metadata: dict[str, Any] | None = None,
    emitter: AuditEmitter | None = None,
) -> ContentPage:
    resolved_scope = PageScope(scope)
    normalized_slug = slug.strip().lower()
    if not normalized_slug or not title.strip():
        raise ValueError("slug and title are required")
    owner: str | None = None
    if resolved_scope is PageScope.COUNTRY_SPECIFIC:
        # The global marker is not an owner; country pages always belong to one concrete country.
        owner = require_country_code(normalize_country(owner_country) or author.home_country())
    ensure_allowed(
        can_write_resource(author, owner),
        principal=author,
        operation="page.create",
        resource_key=f"content_page:{normalized_slug}",
        country=owner,
        emitter=emitter,
    )
    if await pages_repo.get_page_by_slug(session, normalized_slug) is not None:
        raise DuplicatePage(normalized_slug)

    now = _utc_now()
    page = ContentPage(
        id=uuid4().hex,
        slug=normalized_slug,
        title=title.strip(),
        content=content,
        scope=resolved_scope.value,
        owner_country=owner,
        status=PageStatus.DRAFT.value,
        requires_approval=initial_requires_approval(author, resolved_scope, requires_approval),
        revision=1,
        metadata_json=metadata or {},
        created_by=author.id,
        updated_by=author.id,
        created_at=now,
        updated_at=now,
    )
    if emitter is not None:
        emitter.emit(
            actor_id=author.id,
            actor_role=author.role.value,
            operation="page.create",
            resource_key=_page_key(page),
            decision=DECISION_ALLOW,
            metadata={"scope": page.scope, "owner_country": owner, "requires_approval": page.requires_approval},
        )
    session.add(page)
    try:
        await session.commit()
    except IntegrityError as exc:
        # Lost a race on the unique slug.
        await session.rollback()
        raise DuplicatePage(normalized_slug) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreUnavailable("page.create", type(exc).__name__) from exc
    logger.info("content_page_created page_id=%s scope=%s owner=%s actor=%s", page.id, page.scope, owner, author.id)
    return page


async def apply_event(
    session: AsyncSession,
    *,
    page_id: str,
    event: PageEvent | str,
    actor: AdminPrincipal,
    title: str | None = None,
    content: str | None = None,
    emitter: AuditEmitter | None = None,
) -> ContentPage | None:
    """Apply one lifecycle event to a page and persist the result.

    Role checks run before the state check, so a CountryAdmin firing a SuperAdmin-only
    event gets ``Forbidden`` whatever the page status. Returns ``None`` after a delete.
    """
    resolved = PageEvent(event)
    page = await pages_repo.get_page(session, page_id)
    if page is None:
        raise NotFound("content_page", page_id)
    operation = f"page.{resolved.value}"
    ensure_allowed(
        actor_may(actor, page, resolved),
        principal=actor,
        operation=operation,
        resource_key=_page_key(page),
        country=page.owner_country,
        emitter=emitter,
    )
    current = _status(page)
    if (current, resolved) not in _TRANSITIONS:
        raise InvalidTransition(current.value, resolved.value, allowed_events(page, actor))

    if resolved is PageEvent.DELETE:
        if emitter is not None:
            emitter.emit(
                actor_id=actor.id,
                actor_role=actor.role.value,
                operation=operation,
                resource_key=_page_key(page),
                decision=DECISION_ALLOW,
                metadata={"from": current.value},
            )
        await pages_repo.delete_page(session, page.id)
        await _commit(session, operation)
        logger.info("content_page_deleted page_id=%s actor=%s", page.id, actor.id)
        return None

    if resolved is PageEvent.SUBMIT:
        if not actor.is_super_admin() and _scope(page) is PageScope.CENTRALIZED:
            page.requires_approval = True
        target = PageStatus.PENDING if page.requires_approval else PageStatus.APPROVED
    elif resolved is PageEvent.EDIT:
        target = PageStatus.DRAFT
        if current is not PageStatus.DRAFT:
            page.revision = (page.revision or 1) + 1
        if title is not None:
            page.title = title
        if content is not None:
            page.content = content
        if _scope(page) is PageScope.CENTRALIZED and current in _REAPPROVE_ON_EDIT:
            # Changing content every country already sees goes back through review.
            page.requires_approval = True
        else:
            page.requires_approval = initial_requires_approval(
                actor,
                _scope(page),
                None if _scope(page) is PageScope.CENTRALIZED else page.requires_approval,
            )
    else:
        target = _FIXED_TARGETS[resolved]

    if emitter is not None:
        emitter.emit(
            actor_id=actor.id,
            actor_role=actor.role.value,
            operation=operation,
            resource_key=_page_key(page),
            decision=DECISION_ALLOW,
            metadata={"from": current.value, "to": target.value, "revision": page.revision},
        )
    page.status = target.value
    page.updated_by = actor.id
    page.updated_at = _utc_now()
    await _commit(session, operation)
    logger.info(
        "content_page_transition page_id=%s event=%s from=%s to=%s actor=%s",
        page.id,
        resolved.value,
        current.value,
        target.value,
        actor.id,
    )
    return page
