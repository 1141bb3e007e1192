"""Storage class decision engine.

Applies validated settings to a single admission object.
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import ValidationError

from contracts.policy import PolicyDecision, PolicyEngine, PolicyVerdict
from contracts.settings import PolicySettings
from contracts.volume_claim import PersistentVolumeClaim


def parse_volume_claim(obj: Any) -> PersistentVolumeClaim | None:
    """Return the object as a claim, or None when it is some other resource."""
    if not isinstance(obj, dict):
        return None
    try:
        return PersistentVolumeClaim.model_validate(obj)
    except ValidationError:
        return None


def rewrite_storage_class(obj: dict[str, Any], storage_class: str) -> dict[str, Any]:
    """Copy of *obj* with only ``spec.storageClassName`` replaced."""
    mutated = copy.deepcopy(obj)
    spec = mutated.get("spec")
    if spec is None:
        spec = mutated["spec"] = {}
    spec["storageClassName"] = storage_class
    return mutated


def decide(settings: PolicySettings, obj: Any) -> PolicyDecision:
    claim = parse_volume_claim(obj)
    if claim is None:
        return PolicyDecision(verdict=PolicyVerdict.ACCEPT)

    name = claim.storage_class_name
    if not settings.mode.blocks(name):
        return PolicyDecision(verdict=PolicyVerdict.ACCEPT, storage_class=name)

    if settings.fallback is not None:
        return PolicyDecision(
            verdict=PolicyVerdict.MUTATE,
            storage_class=name,
            mutated_object=rewrite_storage_class(obj, settings.fallback),
        )

    return PolicyDecision(
        verdict=PolicyVerdict.REJECT,
        storage_class=name,
        reason=f'storage class "{name}" is not allowed',
    )


class StorageClassPolicyEngine(PolicyEngine):
    """Decision engine bound to one validated configuration."""

    def __init__(self, settings: PolicySettings) -> None:
        if not isinstance(settings, PolicySettings):
            raise TypeError(
                f"expected validated PolicySettings, got {type(settings).__name__}"
            )
        self._settings = settings

    @property
    def settings(self) -> PolicySettings:
        return self._settings

    def decide(self, obj: Any) -> PolicyDecision:
        return decide(self._settings, obj)
