from __future__ import annotations

import time
from typing import Callable, Iterable

from catgov.core.config import get_settings
from catgov.domain.catalog import EntityType, normalize_entity_type
from catgov.domain.models import ActivationOverride
from catgov.persistence.guards import require_country_code
from catgov.services.activation import ActivationOverrideStore
from catgov.services.principals import AdminPrincipal


_Key = tuple[str, str, str]


class DecisionCache:
    """Read-through cache of resolved activation status for one request batch.

    Only successful lookups are cached; a ``StoreUnavailable`` is never remembered.
    Writes made through the cache refresh the cached value for their key.
    """

    def __init__(
        self,
        store: ActivationOverrideStore,
        *,
        ttl_s: float | None = None,
        time_source: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._ttl_s = get_settings().activation_cache_ttl_s if ttl_s is None else ttl_s
        self._time = time_source or time.monotonic
        self._entries: dict[_Key, tuple[float | None, bool]] = {}
        self.hits = 0
        self.misses = 0

    def _expiry(self) -> float | None:
        if self._ttl_s and self._ttl_s > 0:
            return self._time() + self._ttl_s
        return None

    def _get(self, key: _Key) -> bool | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and expires_at <= self._time():
            self._entries.pop(key, None)
            return None
        return value

    def _put(self, key: _Key, value: bool) -> None:
        self._entries[key] = (self._expiry(), value)

    async def is_active(self, entity_type: EntityType | str, entity_id: str, country_code: str) -> bool:
        key = (normalize_entity_type(entity_type), str(entity_id), require_country_code(country_code))
        cached = self._get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        value = await self._store.is_active(key[0], key[1], key[2])
        self._put(key, value)
        return value

    async def is_active_batch(
        self,
        entity_type: EntityType | str,
        entity_ids: Iterable[str],
        country_code: str,
    ) -> dict[str, bool]:
        resolved_type = normalize_entity_type(entity_type)
        country = require_country_code(country_code)
        ids = list(dict.fromkeys(str(item) for item in entity_ids))
        statuses: dict[str, bool] = {}
        missing: list[str] = []
        for entity_id in ids:
            cached = self._get((resolved_type, entity_id, country))
            if cached is None:
                missing.append(entity_id)
            else:
                statuses[entity_id] = cached
        self.hits += len(ids) - len(missing)
        self.misses += len(missing)
        if missing:
            fetched = await self._store.is_active_batch(resolved_type, missing, country)
            for entity_id, value in fetched.items():
                self._put((resolved_type, entity_id, country), value)
                statuses[entity_id] = value
        return {entity_id: statuses[entity_id] for entity_id in ids}

    async def upsert(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        country_code: str,
        is_active: bool,
        actor: AdminPrincipal,
        *,
        entity_name: str | None = None,
    ) -> ActivationOverride:
        # Drop the cached value first so a failed write cannot leave a stale decision behind.
        key = (normalize_entity_type(entity_type), str(entity_id), require_country_code(country_code))
        self._entries.pop(key, None)
        row = await self._store.upsert(key[0], key[1], key[2], is_active, actor, entity_name=entity_name)
        self._put(key, bool(row.is_active))
        return row

    def invalidate(
        self,
        entity_type: EntityType | str | None = None,
        country_code: str | None = None,
    ) -> None:
        if entity_type is None and country_code is None:
            self._entries.clear()
            return
        resolved_type = normalize_entity_type(entity_type) if entity_type is not None else None
        country = require_country_code(country_code) if country_code is not None else None
        for key in list(self._entries):
            if resolved_type is not None and key[0] != resolved_type:
                continue
            if country is not None and key[2] != country:
                continue
            self._entries.pop(key, None)
