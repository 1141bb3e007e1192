"""Settings validator.

Turns the raw two-optional-sets record into a ``PolicySettings``. Checks run
in a fixed order and the first failure wins, so every broken configuration
maps to exactly one message.
"""

from __future__ import annotations

from typing import Any

from contracts.settings import (
    ALLOWED_FIELD,
    DENIED_FIELD,
    AllowList,
    DenyList,
    PolicySettings,
    SettingsError,
    SettingsPayload,
)


def validate_settings(raw: SettingsPayload | dict[str, Any]) -> PolicySettings:
    """Validate a raw settings record and return the normalized settings.

    Raises ``SettingsError`` naming the first violated rule.
    """
    payload = raw if isinstance(raw, SettingsPayload) else SettingsPayload.model_validate(raw)

    denied = payload.denied_storage_classes
    allowed = payload.allowed_storage_classes
    fallback = payload.fallback_storage_class

    if denied is None and allowed is None:
        raise SettingsError(f"One of {DENIED_FIELD} or {ALLOWED_FIELD} must be set")
    if denied is not None and allowed is not None:
        raise SettingsError(f"Only one of {DENIED_FIELD} or {ALLOWED_FIELD} can be set")

    mode: DenyList | AllowList
    if denied is not None:
        if not denied:
            raise SettingsError(f"{DENIED_FIELD} cannot be empty")
        mode = DenyList(names=frozenset(denied))
    else:
        if not allowed:
            raise SettingsError(f"{ALLOWED_FIELD} cannot be empty")
        mode = AllowList(names=frozenset(allowed))

    if fallback is not None:
        error = mode.fallback_error(fallback)
        if error:
            raise SettingsError(error)

    return PolicySettings(mode=mode, fallback=fallback)
