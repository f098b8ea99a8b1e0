from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from catgov.domain.catalog import Role, default_capabilities
from catgov.domain.models import AdminUser
from catgov.persistence.db import SessionLocal


async def seed_admin_user(
    *,
    role: Role = Role.COUNTRY_ADMIN,
    country_code: str | None = "LK",
    capabilities: set[str] | None = None,
    is_active: bool = True,
) -> str:
    # Persist an admin row so API tests can resolve it through the principal header.
    admin_id = uuid4().hex
    now = datetime.now(timezone.utc)
    async with SessionLocal() as session:
        session.add(
            AdminUser(
                id=admin_id,
                email=f"{admin_id}@example.test",
                display_name=f"Admin {admin_id[:6]}",
                role=role.value,
                country_code=None if role is Role.SUPER_ADMIN else country_code,
                capabilities_json=sorted(capabilities if capabilities is not None else default_capabilities(role)),
                is_active=is_active,
                created_at=now,
                updated_at=now,
            )
        )
        await session.commit()
    return admin_id


def admin_headers(admin_id: str) -> dict[str, str]:
    return {"X-Admin-Id": admin_id}
