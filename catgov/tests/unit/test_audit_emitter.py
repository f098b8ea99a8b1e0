from __future__ import annotations

import logging

import pytest

from catgov.services.audit import (
    DECISION_ALLOW,
    AuditEmitter,
    LoggingAuditSink,
    sanitize_metadata,
)
from catgov.tests.utils.audit import FailingAuditSink, RecordingAuditSink


def _emit(emitter: AuditEmitter, **overrides):
    kwargs = {
        "actor_id": "ca-lk",
        "actor_role": "country_admin",
        "operation": "activation.toggle",
        "resource_key": "product:p1:LK",
        "decision": DECISION_ALLOW,
        "metadata": {"is_active": False},
    }
    kwargs.update(overrides)
    return emitter.emit(**kwargs)


@pytest.mark.asyncio
async def test_emit_delivers_to_every_sink() -> None:
    first, second = RecordingAuditSink(), RecordingAuditSink()
    emitter = AuditEmitter([first], enabled=True)
    emitter.add_sink(second)
    fact = _emit(emitter)
    await emitter.drain()
    assert first.facts == [fact]
    assert second.facts == [fact]
    assert fact.as_dict()["resource_key"] == "product:p1:LK"


@pytest.mark.asyncio
async def test_sink_failure_never_reaches_caller() -> None:
    healthy = RecordingAuditSink()
    emitter = AuditEmitter([FailingAuditSink(), healthy], enabled=True)
    fact = _emit(emitter)
    await emitter.drain()
    assert fact is not None
    assert emitter.failures == 1
    assert healthy.facts == [fact]


@pytest.mark.asyncio
async def test_disabled_emitter_skips_delivery() -> None:
    sink = RecordingAuditSink()
    emitter = AuditEmitter([sink], enabled=False)
    assert _emit(emitter) is None
    await emitter.drain()
    assert sink.facts == []


def test_emit_without_running_loop_is_counted_not_raised() -> None:
    sink = RecordingAuditSink()
    emitter = AuditEmitter([sink], enabled=True)
    fact = _emit(emitter)
    assert fact is not None
    assert emitter.failures == 1
    assert sink.facts == []


@pytest.mark.asyncio
async def test_metadata_is_redacted_before_delivery() -> None:
    sink = RecordingAuditSink()
    emitter = AuditEmitter([sink], enabled=True)
    _emit(emitter, metadata={"country": "LK", "auth": {"Authorization": "Bearer x", "api_token": "t"}})
    await emitter.drain()
    assert sink.facts[0].metadata == {
        "country": "LK",
        "auth": {"Authorization": "[REDACTED]", "api_token": "[REDACTED]"},
    }


def test_sanitize_metadata_walks_lists() -> None:
    payload = {"items": [{"password": "p", "name": "ok"}], "count": 1}
    assert sanitize_metadata(payload, ["password"]) == {
        "items": [{"password": "[REDACTED]", "name": "ok"}],
        "count": 1,
    }


@pytest.mark.asyncio
async def test_logging_sink_writes_to_audit_logger(caplog) -> None:
    emitter = AuditEmitter([LoggingAuditSink("catgov.audit.test")], enabled=True)
    with caplog.at_level(logging.INFO, logger="catgov.audit.test"):
        _emit(emitter)
        await emitter.drain()
    assert any("audit_fact operation=activation.toggle" in record.getMessage() for record in caplog.records)
