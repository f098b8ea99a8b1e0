from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Iterable
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.errors import DuplicateAdmin, NotFound, StoreUnavailable
from catgov.domain.catalog import Role, default_capabilities, normalize_role
from catgov.domain.models import AdminUser
from catgov.persistence.guards import normalize_country, require_country_code
from catgov.persistence.repos import admin_users as admin_users_repo
from catgov.services.audit import DECISION_ALLOW, AuditEmitter
from catgov.services.principals import AdminPrincipal
from catgov.services.scope_policy import can_create_principal, can_manage_principal, ensure_allowed


logger = logging.getLogger(__name__)

OPERATION_CREATE = "admin_user.create"
OPERATION_UPDATE = "admin_user.update"


def _grantable(role: Role, actor: AdminPrincipal | None) -> frozenset[str]:
    # Only a super admin can hand admin-user management to a country admin.
    if actor is not None and actor.is_super_admin():
        return default_capabilities(Role.SUPER_ADMIN)
    return default_capabilities(role)


def resolve_capabilities(
    role: Role,
    requested: Iterable[str] | None,
    *,
    actor: AdminPrincipal | None = None,
) -> list[str]:
    """Capabilities stored for a principal of ``role``.

    Without a request the role defaults apply. A request is narrowed to what the
    actor may grant; unknown names are dropped.
    """
    if requested is None:
        return sorted(default_capabilities(role))
    return sorted(_grantable(role, actor) & set(requested))


def _target_country(actor: AdminPrincipal, role: Role, requested: str | None) -> str | None:
    if role is Role.SUPER_ADMIN:
        return None
    if not actor.is_super_admin():
        # Country admins can only staff their own country.
        return actor.home_country()
    return require_country_code(requested)


async def _commit(session: AsyncSession, operation: str, email: str) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateAdmin(email) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreUnavailable(operation, type(exc).__name__) from exc


async def create_admin_principal(
    session: AsyncSession,
    *,
    actor: AdminPrincipal,
    email: str,
    display_name: str,
    requested_role: Role | str = Role.COUNTRY_ADMIN,
    country_code: str | None = None,
    capabilities: Iterable[str] | None = None,
    is_active: bool = True,
    emitter: AuditEmitter | None = None,
) -> AdminUser:
    normalized_email = email.strip().lower()
    if not normalized_email or not display_name.strip():
        raise ValueError("email and display_name are required")
    role = normalize_role(requested_role)
    ensure_allowed(
        can_create_principal(actor, role),
        principal=actor,
        operation=OPERATION_CREATE,
        resource_key=f"admin_user:{normalized_email}",
        emitter=emitter,
    )
    country = _target_country(actor, role, normalize_country(country_code))

    try:
        existing = await admin_users_repo.get_admin_user_by_email(session, normalized_email)
    except SQLAlchemyError as exc:
        raise StoreUnavailable(OPERATION_CREATE, type(exc).__name__) from exc
    if existing is not None:
        raise DuplicateAdmin(normalized_email)

    now = datetime.now(timezone.utc)
    row = AdminUser(
        id=uuid4().hex,
        email=normalized_email,
        display_name=display_name.strip(),
        role=role.value,
        country_code=country,
        capabilities_json=resolve_capabilities(role, capabilities, actor=actor),
        is_active=is_active,
        created_by=actor.id,
        created_at=now,
        updated_at=now,
    )
    if emitter is not None:
        emitter.emit(
            actor_id=actor.id,
            actor_role=actor.role.value,
            operation=OPERATION_CREATE,
            resource_key=f"admin_user:{row.id}",
            decision=DECISION_ALLOW,
            metadata={"role": role.value, "country": country},
        )
    session.add(row)
    await _commit(session, OPERATION_CREATE, normalized_email)
    logger.info("admin_user_created admin_id=%s role=%s country=%s actor=%s", row.id, role.value, country, actor.id)
    return row


async def update_admin_principal(
    session: AsyncSession,
    *,
    actor: AdminPrincipal,
    admin_id: str,
    display_name: str | None = None,
    requested_role: Role | str | None = None,
    country_code: str | None = None,
    capabilities: Iterable[str] | None = None,
    is_active: bool | None = None,
    emitter: AuditEmitter | None = None,
) -> AdminUser:
    """Change role, country, capabilities or status of an existing principal.

    The target must be manageable by the actor and the resulting role must be one the
    actor could create, so a country admin can neither touch a super admin nor promote
    anyone to one. Omitted fields keep their stored values.
    """
    try:
        row = await admin_users_repo.get_admin_user(session, admin_id)
    except SQLAlchemyError as exc:
        raise StoreUnavailable(OPERATION_UPDATE, type(exc).__name__) from exc
    if row is None:
        raise NotFound("admin_user", admin_id)

    current_role = normalize_role(row.role)
    role = normalize_role(requested_role) if requested_role is not None else current_role
    ensure_allowed(
        can_manage_principal(actor, current_role, row.country_code) and can_create_principal(actor, role),
        principal=actor,
        operation=OPERATION_UPDATE,
        resource_key=f"admin_user:{row.id}",
        country=row.country_code,
        emitter=emitter,
    )
    if display_name is not None and not display_name.strip():
        raise ValueError("display_name must not be blank")

    country = _target_country(actor, role, normalize_country(country_code) or row.country_code)
    if capabilities is not None:
        resolved_capabilities = resolve_capabilities(role, capabilities, actor=actor)
    elif role is not current_role:
        resolved_capabilities = resolve_capabilities(role, None)
    else:
        resolved_capabilities = list(row.capabilities_json or [])

    if emitter is not None:
        emitter.emit(
            actor_id=actor.id,
            actor_role=actor.role.value,
            operation=OPERATION_UPDATE,
            resource_key=f"admin_user:{row.id}",
            decision=DECISION_ALLOW,
            metadata={
                "from_role": current_role.value,
                "role": role.value,
                "country": country,
                "capabilities_changed": sorted(resolved_capabilities) != sorted(row.capabilities_json or []),
            },
        )
    row.role = role.value
    row.country_code = country
    row.capabilities_json = resolved_capabilities
    if display_name is not None:
        row.display_name = display_name.strip()
    if is_active is not None:
        row.is_active = is_active
    row.updated_at = datetime.now(timezone.utc)
    await _commit(session, OPERATION_UPDATE, row.email)
    logger.info("admin_user_updated admin_id=%s role=%s country=%s actor=%s", row.id, role.value, country, actor.id)
    return row
