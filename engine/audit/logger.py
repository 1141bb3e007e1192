"""Append-only JSONL audit logger for settings checks and admission verdicts."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.policy import PolicyDecision, PolicyVerdict
from engine.audit import query as audit_query
from engine.audit.query import AuditQuery

_VERDICT_EVENTS = {
    PolicyVerdict.ACCEPT: AuditEvent.ADMISSION_ACCEPT,
    PolicyVerdict.REJECT: AuditEvent.ADMISSION_REJECT,
    PolicyVerdict.MUTATE: AuditEvent.ADMISSION_MUTATE,
}


def decision_event(decision: PolicyDecision) -> AuditEvent:
    """Map a decision to its audit event; non-claim pass-through is a skip."""
    if decision.verdict == PolicyVerdict.ACCEPT and decision.storage_class is None:
        return AuditEvent.ADMISSION_SKIP
    return _VERDICT_EVENTS[decision.verdict]


class JsonlAuditLogger(AuditLogger):
    """Thread-safe, append-only JSONL audit logger."""

    def __init__(self, path: str | Path, app: str = "") -> None:
        self._path = Path(path)
        self._app = app
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: AuditEntry) -> None:
        line = entry.model_dump_json() + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def log_settings(
        self,
        request_id: str,
        *,
        valid: bool,
        policy_mode: str = "",
        message: str | None = None,
    ) -> None:
        detail: dict[str, Any] = {}
        if message:
            detail["message"] = message
        self.log(
            AuditEntry(
                request_id=request_id,
                event=AuditEvent.SETTINGS_VALID if valid else AuditEvent.SETTINGS_INVALID,
                app=self._app,
                policy_mode=policy_mode,
                detail=detail,
            )
        )

    def log_decision(
        self,
        request_id: str,
        decision: PolicyDecision,
        *,
        policy_mode: str,
        fallback: str | None = None,
        resource: dict[str, Any] | None = None,
    ) -> None:
        detail: dict[str, Any] = dict(resource or {})
        if decision.storage_class is not None:
            detail["storage_class"] = decision.storage_class
        if decision.verdict == PolicyVerdict.MUTATE:
            detail["fallback"] = fallback
        if decision.reason:
            detail["message"] = decision.reason
        self.log(
            AuditEntry(
                request_id=request_id,
                event=decision_event(decision),
                app=self._app,
                policy_mode=policy_mode,
                detail=detail,
            )
        )

    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        return audit_query.select(self._path, AuditQuery(request_id=request_id))

    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        return audit_query.tail(self._path, limit, AuditQuery(event=event))

    def tail(self, n: int = 20) -> list[AuditEntry]:
        return audit_query.tail(self._path, n)
