from __future__ import annotations

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.domain.catalog import PageScope
from catgov.domain.models import ContentPage


async def get_page(session: AsyncSession, page_id: str) -> ContentPage | None:
    result = await session.execute(select(ContentPage).where(ContentPage.id == page_id))
    return result.scalar_one_or_none()


async def get_page_by_slug(session: AsyncSession, slug: str) -> ContentPage | None:
    result = await session.execute(select(ContentPage).where(ContentPage.slug == slug))
    return result.scalar_one_or_none()


async def list_pages(
    session: AsyncSession,
    *,
    country_code: str | None = None,
    status: str | None = None,
    scope: str | None = None,
) -> list[ContentPage]:
    # A country filter keeps centralized pages visible alongside that country's own pages.
    stmt = select(ContentPage)
    if country_code is not None:
        stmt = stmt.where(
            or_(
                ContentPage.scope == PageScope.CENTRALIZED.value,
                ContentPage.owner_country == country_code,
            )
        )
    if status is not None:
        stmt = stmt.where(ContentPage.status == status)
    if scope is not None:
        stmt = stmt.where(ContentPage.scope == scope)
    stmt = stmt.order_by(ContentPage.created_at.desc(), ContentPage.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_page(session: AsyncSession, page_id: str) -> None:
    await session.execute(delete(ContentPage).where(ContentPage.id == page_id))
