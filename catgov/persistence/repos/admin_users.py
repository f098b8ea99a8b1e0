from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.domain.models import AdminUser


async def get_admin_user(session: AsyncSession, admin_id: str) -> AdminUser | None:
    result = await session.execute(select(AdminUser).where(AdminUser.id == admin_id))
    return result.scalar_one_or_none()


async def get_admin_user_by_email(session: AsyncSession, email: str) -> AdminUser | None:
    # Compare case-insensitively so legacy mixed-case rows still collide.
    result = await session.execute(
        select(AdminUser).where(func.lower(AdminUser.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()
