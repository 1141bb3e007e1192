"""Policy engine contracts.

The engine turns one admission object into one of three verdicts:
accept unchanged, reject with a reason, or accept a rewritten copy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel

from contracts.settings import PolicySettings


class PolicyVerdict(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    MUTATE = "mutate"


class PolicyDecision(BaseModel):
    verdict: PolicyVerdict
    storage_class: str | None = None    # class requested by the claim, None when not a claim
    reason: str = ""                    # human-readable explanation, set on reject
    mutated_object: dict[str, Any] | None = None

    @property
    def accepted(self) -> bool:
        return self.verdict != PolicyVerdict.REJECT


class PolicyEngine(ABC):
    """Interface the storage class decision engine implements."""

    @property
    @abstractmethod
    def settings(self) -> PolicySettings:
        """The validated settings this engine applies."""
        ...

    @abstractmethod
    def decide(self, obj: Any) -> PolicyDecision:
        """Accept, reject or rewrite a single admission object."""
        ...
