from __future__ import annotations

from typing import Sequence


class CatgovError(Exception):
    """Base error for the catalog governance engine."""


class Forbidden(CatgovError):
    """Policy denied the attempted operation."""

    def __init__(self, operation: str, resource: str | None = None, country: str | None = None) -> None:
        self.operation = operation
        self.resource = resource
        self.country = country
        if country:
            message = f"you do not have permission to modify data for {country}"
        else:
            message = f"you do not have permission to perform {operation}"
        super().__init__(message)


class InvalidTransition(CatgovError):
    """Page state machine rejected the requested event."""

    def __init__(self, current: str, event: str, allowed: Sequence[str] = ()) -> None:
        self.current = current
        self.event = event
        self.allowed = list(allowed)
        actions = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(f"cannot {event} a page in status {current}; allowed actions: {actions}")


class StoreUnavailable(CatgovError):
    """Underlying store failed or exceeded its deadline."""

    def __init__(self, operation: str, reason: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"store unavailable during {operation}{detail}")


class NotFound(CatgovError):
    """Referenced entity, page or principal does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class DuplicatePage(CatgovError):
    """A content page with the same slug already exists."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"page slug already exists: {slug}")


class DuplicateAdmin(CatgovError):
    """An admin principal with the same email already exists."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"email already registered: {email}")


class ConfigurationError(CatgovError):
    """Deployment settings the engine cannot run with."""
