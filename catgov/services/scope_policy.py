"""Authorization rules for country-scoped admin operations.

Every ``can_*`` function is a pure function of the principal and the target; none of
them raise. ``ensure_allowed`` is the single place a ``False`` decision becomes a
``Forbidden`` error and a deny audit fact.
"""
from __future__ import annotations

from catgov.core.config import GLOBAL_COUNTRY
from catgov.core.errors import Forbidden
from catgov.domain.catalog import ADMIN_USERS_MANAGEMENT, Role, normalize_role
from catgov.persistence.guards import normalize_country
from catgov.services.audit import DECISION_DENY, AuditEmitter
from catgov.services.principals import AdminPrincipal


def _is_global(resource_country: str | None) -> bool:
    # Resources without an owning country (centralized pages) are global.
    normalized = normalize_country(resource_country)
    return normalized is None or normalized == GLOBAL_COUNTRY


def can_read(principal: AdminPrincipal, resource_country: str | None) -> bool:
    if principal.is_super_admin() or _is_global(resource_country):
        return True
    return normalize_country(resource_country) == principal.home_country()


def can_write_resource(principal: AdminPrincipal, resource_country: str | None) -> bool:
    # Reads and writes share one rule for core catalog resources.
    return can_read(principal, resource_country)


def can_toggle_activation(principal: AdminPrincipal, target_country: str | None) -> bool:
    # Overrides are a country-local concern; super admins control defaults by entity existence.
    if principal.is_super_admin():
        return False
    target = normalize_country(target_country)
    if target is None or target == GLOBAL_COUNTRY:
        return False
    return principal.home_country() == target


def can_create_principal(actor: AdminPrincipal, requested_role: Role | str) -> bool:
    if actor.is_super_admin():
        return True
    try:
        role = normalize_role(requested_role)
    except ValueError:
        return False
    return role is not Role.SUPER_ADMIN and actor.has_capability(ADMIN_USERS_MANAGEMENT)


def can_manage_principal(actor: AdminPrincipal, target_role: Role | str, target_country: str | None) -> bool:
    # Country admins only manage non-super principals homed in their own country.
    if actor.is_super_admin():
        return True
    try:
        role = normalize_role(target_role)
    except ValueError:
        return False
    if role is Role.SUPER_ADMIN or not actor.has_capability(ADMIN_USERS_MANAGEMENT):
        return False
    return normalize_country(target_country) == actor.home_country()


def ensure_allowed(
    allowed: bool,
    *,
    principal: AdminPrincipal,
    operation: str,
    resource_key: str,
    country: str | None = None,
    emitter: AuditEmitter | None = None,
) -> None:
    if allowed:
        return
    if emitter is not None:
        emitter.emit(
            actor_id=principal.id,
            actor_role=principal.role.value,
            operation=operation,
            resource_key=resource_key,
            decision=DECISION_DENY,
            metadata={"country": country} if country else None,
        )
    raise Forbidden(operation, resource=resource_key, country=country)
