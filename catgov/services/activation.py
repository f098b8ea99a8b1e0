from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catgov.core.config import get_settings
from catgov.core.errors import StoreUnavailable
from catgov.domain.catalog import EntityType, normalize_entity_type
from catgov.domain.models import ActivationOverride
from catgov.persistence.guards import require_country_code
from catgov.persistence.repos import activation_overrides as overrides_repo
from catgov.services.audit import DECISION_ALLOW, DECISION_ERROR, AuditEmitter
from catgov.services.principals import AdminPrincipal
from catgov.services.resilience import retry_async
from catgov.services.scope_policy import can_toggle_activation, ensure_allowed


logger = logging.getLogger(__name__)

T = TypeVar("T")

OPERATION_TOGGLE = "activation.toggle"


class ActivationDisplay(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    # Store outage: never guess active or inactive.
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ActivationQuery:
    # One typed request instead of loosely ordered positional arguments.
    entity_type: EntityType | str
    country_code: str
    entity_ids: tuple[str, ...] = ()
    include_inactive: bool = True

    def normalized(self) -> "ActivationQuery":
        return ActivationQuery(
            entity_type=normalize_entity_type(self.entity_type),
            country_code=require_country_code(self.country_code),
            entity_ids=tuple(dict.fromkeys(str(item) for item in self.entity_ids)),
            include_inactive=self.include_inactive,
        )


def override_key(entity_type: str, entity_id: str, country_code: str) -> str:
    return f"{entity_type}:{entity_id}:{country_code}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OverrideListing:
    """Restartable async sequence of overrides.

    Each iteration issues a fresh query; nothing is held between iterations.
    """

    def __init__(self, store: "ActivationOverrideStore", query: ActivationQuery) -> None:
        self._store = store
        self._query = query

    async def __aiter__(self) -> AsyncIterator[ActivationOverride]:
        rows = await self._store._read(
            "list_overrides",
            lambda: overrides_repo.list_overrides(
                self._store.session,
                entity_type=str(self._query.entity_type),
                country_code=self._query.country_code,
                include_inactive=self._query.include_inactive,
            ),
        )
        for row in rows:
            yield row

    async def to_list(self) -> list[ActivationOverride]:
        return [row async for row in self]


class ActivationOverrideStore:
    """Sparse per-country activation overrides over the ``activation_overrides`` table.

    A missing row means active. Every store call runs under a deadline
    (``timeout_s`` or ``Settings.store_timeout_ms``); deadline misses and driver errors
    surface as ``StoreUnavailable``. Reads retry with backoff, writes never do.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        emitter: AuditEmitter | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.session = session
        self._emitter = emitter
        self._timeout_s = timeout_s if timeout_s is not None else get_settings().store_timeout_ms / 1000.0

    async def _guard(self, operation: str, func: Callable[[], Awaitable[T]], timeout_s: float | None) -> T:
        deadline = self._timeout_s if timeout_s is None else timeout_s
        try:
            return await asyncio.wait_for(func(), timeout=deadline)
        except asyncio.TimeoutError as exc:
            await self._safe_rollback()
            logger.warning("store_deadline_exceeded operation=%s timeout_s=%s", operation, deadline)
            raise StoreUnavailable(operation, "deadline exceeded") from exc
        except SQLAlchemyError as exc:
            await self._safe_rollback()
            logger.warning("store_error operation=%s", operation, exc_info=exc)
            raise StoreUnavailable(operation, type(exc).__name__) from exc

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.debug("store_rollback_failed", exc_info=True)

    async def _read(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        timeout_s: float | None = None,
    ) -> T:
        return await retry_async(lambda: self._guard(operation, func, timeout_s))

    async def is_active(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        country_code: str,
        *,
        timeout_s: float | None = None,
    ) -> bool:
        resolved_type = normalize_entity_type(entity_type)
        country = require_country_code(country_code)
        row = await self._read(
            "is_active",
            lambda: overrides_repo.get_override(
                self.session,
                entity_type=resolved_type,
                entity_id=str(entity_id),
                country_code=country,
            ),
            timeout_s,
        )
        return True if row is None else bool(row.is_active)

    def list_overrides(
        self,
        entity_type: EntityType | str,
        country_code: str,
        *,
        include_inactive: bool = True,
    ) -> OverrideListing:
        query = ActivationQuery(
            entity_type=entity_type,
            country_code=country_code,
            include_inactive=include_inactive,
        ).normalized()
        return OverrideListing(self, query)

    async def is_active_batch(
        self,
        entity_type: EntityType | str,
        entity_ids: Iterable[str],
        country_code: str,
        *,
        timeout_s: float | None = None,
    ) -> dict[str, bool]:
        query = ActivationQuery(
            entity_type=entity_type,
            country_code=country_code,
            entity_ids=tuple(entity_ids),
        ).normalized()
        statuses = {entity_id: True for entity_id in query.entity_ids}
        if not statuses:
            return statuses
        rows = await self._read(
            "is_active_batch",
            lambda: overrides_repo.get_overrides_for_ids(
                self.session,
                entity_type=str(query.entity_type),
                entity_ids=query.entity_ids,
                country_code=query.country_code,
            ),
            timeout_s,
        )
        for row in rows:
            statuses[row.entity_id] = bool(row.is_active)
        return statuses

    async def upsert(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        country_code: str,
        is_active: bool,
        actor: AdminPrincipal,
        *,
        entity_name: str | None = None,
        timeout_s: float | None = None,
    ) -> ActivationOverride:
        resolved_type = normalize_entity_type(entity_type)
        country = require_country_code(country_code)
        key = override_key(resolved_type, str(entity_id), country)
        ensure_allowed(
            can_toggle_activation(actor, country),
            principal=actor,
            operation=OPERATION_TOGGLE,
            resource_key=key,
            country=country,
            emitter=self._emitter,
        )
        if self._emitter is not None:
            self._emitter.emit(
                actor_id=actor.id,
                actor_role=actor.role.value,
                operation=OPERATION_TOGGLE,
                resource_key=key,
                decision=DECISION_ALLOW,
                metadata={"is_active": bool(is_active), "country": country},
            )

        async def _write() -> ActivationOverride:
            row = await overrides_repo.upsert_override(
                self.session,
                entity_type=resolved_type,
                entity_id=str(entity_id),
                country_code=country,
                is_active=bool(is_active),
                updated_by=actor.id,
                updated_at=_utc_now(),
                entity_name=entity_name,
            )
            await self.session.commit()
            return row

        try:
            row = await self._guard("upsert", _write, timeout_s)
        except StoreUnavailable as exc:
            if self._emitter is not None:
                self._emitter.emit(
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    operation=OPERATION_TOGGLE,
                    resource_key=key,
                    decision=DECISION_ERROR,
                    metadata={"is_active": bool(is_active), "country": country, "reason": exc.reason},
                )
            raise
        logger.info(
            "activation_override_upserted entity_type=%s entity_id=%s country=%s is_active=%s actor=%s",
            resolved_type,
            entity_id,
            country,
            row.is_active,
            actor.id,
        )
        return row


async def resolve_display_states(
    store: ActivationOverrideStore,
    entity_type: EntityType | str,
    entity_ids: Iterable[str],
    country_code: str,
) -> dict[str, ActivationDisplay]:
    # Listing screens render "unknown" during outages instead of defaulting either way.
    ids = list(dict.fromkeys(str(item) for item in entity_ids))
    try:
        statuses = await store.is_active_batch(entity_type, ids, country_code)
    except StoreUnavailable:
        logger.warning("activation_status_unknown entity_type=%s country=%s count=%s", entity_type, country_code, len(ids))
        return {entity_id: ActivationDisplay.UNKNOWN for entity_id in ids}
    return {
        entity_id: ActivationDisplay.ACTIVE if active else ActivationDisplay.INACTIVE
        for entity_id, active in statuses.items()
    }
