"""Shared contracts: source of truth for all storage class policy interfaces."""

from contracts.admission import (
    AdmissionRequest,
    GroupVersionKind,
    SettingsValidationResponse,
    ValidationRequest,
    ValidationResponse,
)
from contracts.manifest import AppInfo, AuditConfig, Manifest
from contracts.settings import AllowList, DenyList, PolicySettings, SettingsError, SettingsPayload
from contracts.volume_claim import PersistentVolumeClaim, PersistentVolumeClaimSpec
from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.policy import PolicyDecision, PolicyEngine, PolicyVerdict

__all__ = [
    # admission
    "AdmissionRequest",
    "GroupVersionKind",
    "SettingsValidationResponse",
    "ValidationRequest",
    "ValidationResponse",
    # manifest
    "AppInfo",
    "AuditConfig",
    "Manifest",
    # settings
    "AllowList",
    "DenyList",
    "PolicySettings",
    "SettingsError",
    "SettingsPayload",
    # volume claim
    "PersistentVolumeClaim",
    "PersistentVolumeClaimSpec",
    # audit
    "AuditEntry",
    "AuditEvent",
    "AuditLogger",
    # policy
    "PolicyDecision",
    "PolicyEngine",
    "PolicyVerdict",
]
