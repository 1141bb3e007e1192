"""Policy settings contracts.

Two shapes live here: the raw record the host delivers (two optional
name-sets plus an optional fallback) and the validated ``PolicySettings``
that the decision engine consumes. The raw record may hold illegal
combinations; ``PolicySettings`` cannot.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


DENIED_FIELD = "deniedStorageClasses"
ALLOWED_FIELD = "allowedStorageClasses"
FALLBACK_FIELD = "fallbackStorageClass"


class SettingsError(ValueError):
    """Raised when a policy configuration violates one of its invariants."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ── Raw wire form ───────────────────────────────────────────────────


class SettingsPayload(BaseModel):
    """Settings exactly as the host sends them (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    denied_storage_classes: set[str] | None = Field(default=None, alias=DENIED_FIELD)
    allowed_storage_classes: set[str] | None = Field(default=None, alias=ALLOWED_FIELD)
    fallback_storage_class: str | None = Field(default=None, alias=FALLBACK_FIELD)

    def is_empty(self) -> bool:
        return (
            self.denied_storage_classes is None
            and self.allowed_storage_classes is None
            and self.fallback_storage_class is None
        )


# ── Validated form ──────────────────────────────────────────────────


class DenyList(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["deny_list"] = "deny_list"
    names: frozenset[str]

    def blocks(self, storage_class: str) -> bool:
        return storage_class in self.names

    def fallback_error(self, fallback: str) -> str | None:
        if fallback in self.names:
            return f"{FALLBACK_FIELD} cannot be in {DENIED_FIELD}"
        return None


class AllowList(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["allow_list"] = "allow_list"
    names: frozenset[str]

    def blocks(self, storage_class: str) -> bool:
        return storage_class not in self.names

    def fallback_error(self, fallback: str) -> str | None:
        if fallback not in self.names:
            return f"{FALLBACK_FIELD} must be in {ALLOWED_FIELD}"
        return None


PolicyMode = Annotated[Union[DenyList, AllowList], Field(discriminator="kind")]


class PolicySettings(BaseModel):
    """A configuration that has passed every settings invariant.

    Build it with ``engine.settings.validate_settings``, which raises
    ``SettingsError`` directly. Direct construction runs the same membership
    checks, but pydantic wraps the failure: it surfaces as a
    ``pydantic.ValidationError`` whose error context carries the
    ``SettingsError``.
    """

    model_config = ConfigDict(frozen=True)

    mode: PolicyMode
    fallback: str | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> PolicySettings:
        if not self.mode.names:
            field = DENIED_FIELD if isinstance(self.mode, DenyList) else ALLOWED_FIELD
            raise SettingsError(f"{field} cannot be empty")
        if self.fallback is not None:
            error = self.mode.fallback_error(self.fallback)
            if error:
                raise SettingsError(error)
        return self

    @property
    def mode_name(self) -> str:
        return self.mode.kind

    @property
    def denied_storage_classes(self) -> set[str] | None:
        if isinstance(self.mode, DenyList):
            return set(self.mode.names)
        return None

    @property
    def allowed_storage_classes(self) -> set[str] | None:
        if isinstance(self.mode, AllowList):
            return set(self.mode.names)
        return None

    @property
    def fallback_storage_class(self) -> str | None:
        return self.fallback

    def to_payload(self) -> SettingsPayload:
        return SettingsPayload(
            denied_storage_classes=self.denied_storage_classes,
            allowed_storage_classes=self.allowed_storage_classes,
            fallback_storage_class=self.fallback,
        )
