from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.config import GLOBAL_COUNTRY
from catgov.core.errors import Forbidden, NotFound, StoreUnavailable
from catgov.domain.catalog import Role, default_capabilities, normalize_role
from catgov.domain.models import AdminUser
from catgov.persistence.guards import normalize_country
from catgov.persistence.repos import admin_users as admin_users_repo


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated admin identity handed to every policy decision.

    Built once per request and never mutated. A SuperAdmin holds every capability
    and carries no home country; a CountryAdmin must have one.
    """

    id: str
    role: Role
    country_code: str | None = None
    capabilities: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        role = normalize_role(self.role)
        object.__setattr__(self, "role", role)
        object.__setattr__(self, "capabilities", frozenset(self.capabilities))
        if role is Role.SUPER_ADMIN:
            object.__setattr__(self, "country_code", None)
            return
        country = normalize_country(self.country_code)
        if country is None:
            raise ValueError("country admin principals require a home country")
        if country == GLOBAL_COUNTRY:
            raise ValueError("country admin principals cannot be homed in the global scope")
        object.__setattr__(self, "country_code", country)

    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    def home_country(self) -> str | None:
        return self.country_code

    def has_capability(self, name: str) -> bool:
        if self.is_super_admin():
            return True
        return name in self.capabilities

    def scope_label(self) -> str:
        # Human-readable scope shown next to country-filtered screens.
        if self.is_super_admin():
            return "Global (All Countries)"
        return self.country_code or "Unknown Country"


def super_admin(principal_id: str) -> AdminPrincipal:
    return AdminPrincipal(id=principal_id, role=Role.SUPER_ADMIN)


def country_admin(
    principal_id: str,
    country_code: str,
    capabilities: frozenset[str] | set[str] | None = None,
) -> AdminPrincipal:
    resolved = default_capabilities(Role.COUNTRY_ADMIN) if capabilities is None else frozenset(capabilities)
    return AdminPrincipal(
        id=principal_id,
        role=Role.COUNTRY_ADMIN,
        country_code=country_code,
        capabilities=resolved,
    )


def principal_from_admin_user(row: AdminUser) -> AdminPrincipal:
    return AdminPrincipal(
        id=row.id,
        role=normalize_role(row.role),
        country_code=row.country_code,
        capabilities=frozenset(row.capabilities_json or []),
    )


async def resolve_principal(session: AsyncSession, admin_id: str) -> AdminPrincipal:
    # Map an admin id already vouched for by the auth layer onto a principal.
    try:
        row = await admin_users_repo.get_admin_user(session, admin_id)
    except SQLAlchemyError as exc:
        raise StoreUnavailable("resolve_principal", str(exc)) from exc
    if row is None:
        raise NotFound("admin_user", admin_id)
    if not row.is_active:
        raise Forbidden("resolve_principal", resource=f"admin_user:{admin_id}")
    return principal_from_admin_user(row)
