from __future__ import annotations

from catgov.core.config import GLOBAL_COUNTRY


class CountryPredicateError(ValueError):
    # Surface missing or malformed country codes before a query is issued.
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def normalize_country(country_code: str | None) -> str | None:
    # Upper-case and trim country codes; empty values collapse to None.
    if country_code is None:
        return None
    cleaned = str(country_code).strip().upper()
    return cleaned or None


def is_global(country_code: str | None) -> bool:
    return normalize_country(country_code) == GLOBAL_COUNTRY


def require_country_code(country_code: str | None) -> str:
    # Country-keyed rows need a concrete country; reject blanks and the global marker.
    normalized = normalize_country(country_code)
    if normalized is None:
        raise CountryPredicateError("country_code is required")
    if normalized == GLOBAL_COUNTRY:
        raise CountryPredicateError("country_code must name a concrete country, not global")
    return normalized


def country_predicate(model, country_code: str) -> object:
    # Build country predicates through a single helper so every query is scoped.
    return model.country_code == require_country_code(country_code)
