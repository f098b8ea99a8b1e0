from __future__ import annotations

from catgov.services.audit import AuditEmitter, AuditFact


class RecordingAuditSink:
    # Collect delivered facts for assertions.
    def __init__(self) -> None:
        self.facts: list[AuditFact] = []

    async def write(self, fact: AuditFact) -> None:
        self.facts.append(fact)

    def operations(self, decision: str | None = None) -> list[str]:
        return [fact.operation for fact in self.facts if decision is None or fact.decision == decision]


class FailingAuditSink:
    # Simulate an unavailable audit backend.
    async def write(self, fact: AuditFact) -> None:
        raise ConnectionError("audit sink offline")


def recording_emitter() -> tuple[AuditEmitter, RecordingAuditSink]:
    sink = RecordingAuditSink()
    return AuditEmitter([sink], enabled=True), sink
