from __future__ import annotations

from datetime import datetime
from typing import Iterable
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.errors import ConfigurationError
from catgov.domain.models import ActivationOverride
from catgov.persistence.guards import country_predicate


# Keep IN-lists bounded for large listing screens.
_BATCH_CHUNK = 500
_KEY_COLUMNS = ["entity_type", "entity_id", "country_code"]


async def get_override(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: str,
    country_code: str,
) -> ActivationOverride | None:
    result = await session.execute(
        select(ActivationOverride).where(
            ActivationOverride.entity_type == entity_type,
            ActivationOverride.entity_id == entity_id,
            country_predicate(ActivationOverride, country_code),
        )
    )
    return result.scalar_one_or_none()


async def list_overrides(
    session: AsyncSession,
    *,
    entity_type: str,
    country_code: str,
    include_inactive: bool = True,
) -> list[ActivationOverride]:
    stmt = select(ActivationOverride).where(
        ActivationOverride.entity_type == entity_type,
        country_predicate(ActivationOverride, country_code),
    )
    if not include_inactive:
        stmt = stmt.where(ActivationOverride.is_active.is_(True))
    stmt = stmt.order_by(ActivationOverride.updated_at.desc(), ActivationOverride.entity_id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_overrides_for_ids(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_ids: Iterable[str],
    country_code: str,
) -> list[ActivationOverride]:
    # Only rows that exist come back; callers apply them over a default-active map.
    ids = list(entity_ids)
    rows: list[ActivationOverride] = []
    for start in range(0, len(ids), _BATCH_CHUNK):
        chunk = ids[start : start + _BATCH_CHUNK]
        result = await session.execute(
            select(ActivationOverride).where(
                ActivationOverride.entity_type == entity_type,
                country_predicate(ActivationOverride, country_code),
                ActivationOverride.entity_id.in_(chunk),
            )
        )
        rows.extend(result.scalars().all())
    return rows


_DIALECT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise ConfigurationError(f"conditional upsert is not supported for dialect {dialect}") from None


async def upsert_override(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: str,
    country_code: str,
    is_active: bool,
    updated_by: str,
    updated_at: datetime,
    entity_name: str | None = None,
) -> ActivationOverride:
    # Single INSERT .. ON CONFLICT statement so concurrent toggles never create a second row.
    insert = _dialect_insert(session)
    stmt = insert(ActivationOverride).values(
        id=uuid4().hex,
        entity_type=entity_type,
        entity_id=entity_id,
        country_code=country_code,
        is_active=is_active,
        updated_by=updated_by,
        updated_at=updated_at,
        entity_name=entity_name,
    )
    table = ActivationOverride.__table__
    stmt = stmt.on_conflict_do_update(
        index_elements=_KEY_COLUMNS,
        set_={
            "is_active": stmt.excluded.is_active,
            "updated_by": stmt.excluded.updated_by,
            "updated_at": stmt.excluded.updated_at,
            "entity_name": func.coalesce(stmt.excluded.entity_name, table.c.entity_name),
        },
    ).returning(ActivationOverride)
    result = await session.execute(stmt, execution_options={"populate_existing": True})
    return result.scalar_one()


async def count_overrides(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: str,
    country_code: str,
) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ActivationOverride)
        .where(
            ActivationOverride.entity_type == entity_type,
            ActivationOverride.entity_id == entity_id,
            country_predicate(ActivationOverride, country_code),
        )
    )
    return int(result.scalar_one())
