"""Admission host adapter.

Translates the host's envelope into engine calls and engine decisions back
into wire responses. Holds no decision logic of its own.
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Any

from contracts.admission import (
    SettingsValidationResponse,
    ValidationRequest,
    ValidationResponse,
)
from contracts.manifest import Manifest
from contracts.policy import PolicyDecision, PolicyVerdict
from contracts.settings import PolicySettings, SettingsError, SettingsPayload
from engine.audit.logger import JsonlAuditLogger
from engine.policy import StorageClassPolicyEngine
from engine.settings import validate_settings

DEFAULT_ENGINE_CACHE_SIZE = 128

_SettingsKey = tuple[frozenset[str] | None, frozenset[str] | None, str | None]


def _settings_key(payload: SettingsPayload) -> _SettingsKey:
    denied = payload.denied_storage_classes
    allowed = payload.allowed_storage_classes
    return (
        frozenset(denied) if denied is not None else None,
        frozenset(allowed) if allowed is not None else None,
        payload.fallback_storage_class,
    )


def to_response(decision: PolicyDecision) -> ValidationResponse:
    if decision.verdict == PolicyVerdict.REJECT:
        return ValidationResponse(accepted=False, message=decision.reason)
    if decision.verdict == PolicyVerdict.MUTATE:
        return ValidationResponse(accepted=True, mutated_object=decision.mutated_object)
    return ValidationResponse(accepted=True)


class AdmissionHost:
    """Serves validate / validate_settings calls for one policy instance.

    Valid settings embedded in an envelope are kept in a bounded LRU of
    engines, at most ``cache_size`` of them; invalid ones are re-checked on
    every call. Envelopes without settings use the settings the host was
    started with.
    """

    def __init__(
        self,
        settings: PolicySettings | None = None,
        logger: JsonlAuditLogger | None = None,
        cache_size: int = DEFAULT_ENGINE_CACHE_SIZE,
    ) -> None:
        if cache_size < 1:
            raise ValueError(f"cache_size must be at least 1, got {cache_size}")
        self._default = StorageClassPolicyEngine(settings) if settings is not None else None
        self._logger = logger
        self._lock = threading.Lock()
        self._cache_size = cache_size
        self._engines: OrderedDict[_SettingsKey, StorageClassPolicyEngine] = OrderedDict()

    @classmethod
    def from_manifest(
        cls, manifest: Manifest, logger: JsonlAuditLogger | None = None
    ) -> AdmissionHost:
        """Validate the manifest settings and build a host around them.

        Raises ``SettingsError`` when the settings are inconsistent; the
        failure is audited before it propagates.
        """
        request_id = str(uuid.uuid4())
        try:
            settings = validate_settings(manifest.settings)
        except SettingsError as exc:
            if logger is not None:
                logger.log_settings(request_id, valid=False, message=exc.message)
            raise
        if logger is not None:
            logger.log_settings(request_id, valid=True, policy_mode=settings.mode_name)
        return cls(settings, logger)

    @property
    def settings(self) -> PolicySettings | None:
        return self._default.settings if self._default is not None else None

    @property
    def cached_engines(self) -> int:
        with self._lock:
            return len(self._engines)

    # ── validate_settings ───────────────────────────────────────────

    def validate_settings(
        self, payload: SettingsPayload | dict[str, Any]
    ) -> SettingsValidationResponse:
        request_id = str(uuid.uuid4())
        try:
            settings = validate_settings(payload)
        except SettingsError as exc:
            if self._logger is not None:
                self._logger.log_settings(request_id, valid=False, message=exc.message)
            return SettingsValidationResponse(valid=False, message=exc.message)

        if self._logger is not None:
            self._logger.log_settings(request_id, valid=True, policy_mode=settings.mode_name)
        return SettingsValidationResponse(valid=True)

    # ── validate ────────────────────────────────────────────────────

    def validate(self, envelope: ValidationRequest) -> ValidationResponse:
        """Run one admission request through the engine.

        Raises ``SettingsError`` when the envelope carries invalid settings,
        or carries none and the host was started without any.
        """
        engine = self._engine_for(envelope.settings)
        request = envelope.request
        decision = engine.decide(request.object)

        if self._logger is not None:
            self._logger.log_decision(
                request.uid or str(uuid.uuid4()),
                decision,
                policy_mode=engine.settings.mode_name,
                fallback=engine.settings.fallback,
                resource=_resource_detail(envelope),
            )
        return to_response(decision)

    def _engine_for(self, payload: SettingsPayload) -> StorageClassPolicyEngine:
        if payload.is_empty() and self._default is not None:
            return self._default

        key = _settings_key(payload)
        with self._lock:
            cached = self._engines.get(key)
            if cached is not None:
                self._engines.move_to_end(key)
                return cached

        # Failures are not cached; validate_settings raises SettingsError.
        engine = StorageClassPolicyEngine(validate_settings(payload))
        with self._lock:
            self._engines[key] = engine
            self._engines.move_to_end(key)
            while len(self._engines) > self._cache_size:
                self._engines.popitem(last=False)
        return engine


def _resource_detail(envelope: ValidationRequest) -> dict[str, Any]:
    request = envelope.request
    detail: dict[str, Any] = {"kind": request.kind.kind, "operation": request.operation}
    obj = request.object
    metadata = obj.get("metadata") if isinstance(obj, dict) else None
    if isinstance(metadata, dict):
        detail["name"] = metadata.get("name") or request.name
        detail["namespace"] = metadata.get("namespace") or request.namespace
    else:
        detail["name"] = request.name
        detail["namespace"] = request.namespace
    return detail
