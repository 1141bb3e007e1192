"""Audit logging contracts.

Append-only JSONL, one record per settings validation or admission decision.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from contracts.policy import PolicyVerdict


class AuditEvent(str, Enum):
    SETTINGS_VALID = "settings.valid"
    SETTINGS_INVALID = "settings.invalid"
    ADMISSION_ACCEPT = "admission.accept"
    ADMISSION_REJECT = "admission.reject"
    ADMISSION_MUTATE = "admission.mutate"
    ADMISSION_SKIP = "admission.skip"


ADMISSION_EVENTS = frozenset(
    {
        AuditEvent.ADMISSION_ACCEPT,
        AuditEvent.ADMISSION_REJECT,
        AuditEvent.ADMISSION_MUTATE,
        AuditEvent.ADMISSION_SKIP,
    }
)

# A pass-through is an accepted response, so it counts as an accept.
VERDICT_EVENTS: dict[PolicyVerdict, frozenset[AuditEvent]] = {
    PolicyVerdict.ACCEPT: frozenset({AuditEvent.ADMISSION_ACCEPT, AuditEvent.ADMISSION_SKIP}),
    PolicyVerdict.REJECT: frozenset({AuditEvent.ADMISSION_REJECT}),
    PolicyVerdict.MUTATE: frozenset({AuditEvent.ADMISSION_MUTATE}),
}


class AuditEntry(BaseModel):
    """A single audit log record."""

    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str
    event: AuditEvent
    app: str = ""
    policy_mode: str = ""
    detail: dict[str, Any] = {}  # storage class, fallback, resource name, message


class AuditLogger(ABC):
    """Interface for the append-only audit logger."""

    @abstractmethod
    def log(self, entry: AuditEntry) -> None:
        """Append an entry to the audit log."""
        ...

    @abstractmethod
    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        """Return all entries for a given request_id."""
        ...

    @abstractmethod
    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        """Return recent entries of a given event type."""
        ...

    @abstractmethod
    def tail(self, n: int = 20) -> list[AuditEntry]:
        """Return the last N entries."""
        ...
