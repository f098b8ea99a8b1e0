from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Iterable, Protocol

from catgov.core.config import get_settings


logger = logging.getLogger(__name__)

DECISION_ALLOW = "allow"
DECISION_DENY = "deny"
# Allowed operation whose write did not commit.
DECISION_ERROR = "error"

_REDACTED_VALUE = "[REDACTED]"


@dataclass(frozen=True)
class AuditFact:
    # One governance decision or state change, forwarded to external sinks.
    actor_id: str | None
    actor_role: str | None
    operation: str
    resource_key: str
    decision: str
    occurred_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "operation": self.operation,
            "resource_key": self.resource_key,
            "decision": self.decision,
            "occurred_at": self.occurred_at.isoformat(),
            "metadata": self.metadata,
        }


class AuditSink(Protocol):
    async def write(self, fact: AuditFact) -> None: ...


class LoggingAuditSink:
    """Forward audit facts to a dedicated logger for collection by the log pipeline."""

    def __init__(self, logger_name: str | None = None) -> None:
        self._logger = logging.getLogger(logger_name or get_settings().audit_logger_name)

    async def write(self, fact: AuditFact) -> None:
        self._logger.info(
            "audit_fact operation=%s decision=%s resource=%s actor_id=%s actor_role=%s metadata=%s",
            fact.operation,
            fact.decision,
            fact.resource_key,
            fact.actor_id,
            fact.actor_role,
            fact.metadata,
        )


def _redact_keys() -> list[str]:
    raw = get_settings().audit_redact_keys
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def sanitize_metadata(value: Any, patterns: Iterable[str] | None = None) -> Any:
    # Recursively scrub sensitive fields while preserving safe structure.
    resolved = list(patterns) if patterns is not None else _redact_keys()
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            if any(pattern in key.lower() for pattern in resolved):
                sanitized[key] = _REDACTED_VALUE
            else:
                sanitized[key] = sanitize_metadata(raw_value, resolved)
        return sanitized
    if isinstance(value, list):
        return [sanitize_metadata(item, resolved) for item in value]
    return value


class AuditEmitter:
    """Fire-and-forget delivery of audit facts.

    ``emit`` never raises and never waits on a sink: delivery runs as a background task
    and sink failures are logged and counted instead of reaching the caller.
    """

    def __init__(self, sinks: list[AuditSink] | None = None, *, enabled: bool | None = None) -> None:
        self._sinks: list[AuditSink] = list(sinks) if sinks is not None else [LoggingAuditSink()]
        self._enabled = get_settings().audit_enabled if enabled is None else enabled
        self._pending: set[asyncio.Task[None]] = set()
        self.failures = 0

    def add_sink(self, sink: AuditSink) -> None:
        self._sinks.append(sink)

    def emit(
        self,
        *,
        actor_id: str | None,
        actor_role: str | None,
        operation: str,
        resource_key: str,
        decision: str,
        metadata: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> AuditFact | None:
        if not self._enabled:
            return None
        fact = AuditFact(
            actor_id=actor_id,
            actor_role=actor_role,
            operation=operation,
            resource_key=resource_key,
            decision=decision,
            occurred_at=occurred_at or datetime.now(timezone.utc),
            metadata=sanitize_metadata(metadata or {}),
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.failures += 1
            logger.warning("audit_emit_without_loop operation=%s resource=%s", operation, resource_key)
            return fact
        for sink in self._sinks:
            task = loop.create_task(self._deliver(sink, fact))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return fact

    async def _deliver(self, sink: AuditSink, fact: AuditFact) -> None:
        try:
            await sink.write(fact)
        except Exception as exc:  # noqa: BLE001 - sink failures must never reach the governed operation
            self.failures += 1
            logger.warning(
                "audit_sink_failed sink=%s operation=%s resource=%s",
                type(sink).__name__,
                fact.operation,
                fact.resource_key,
                exc_info=exc,
            )

    async def drain(self) -> None:
        # Wait for in-flight deliveries; used on shutdown and in tests.
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_default_emitter: AuditEmitter | None = None


def get_audit_emitter() -> AuditEmitter:
    global _default_emitter
    if _default_emitter is None:
        _default_emitter = AuditEmitter()
    return _default_emitter


def reset_audit_emitter() -> None:
    # Drop the process-wide emitter so tests start from clean sink state.
    global _default_emitter
    _default_emitter = None
