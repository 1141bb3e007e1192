"""Manifest (scpolicy.yaml) schema: Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel

from contracts.settings import SettingsPayload


class AppInfo(BaseModel):
    name: str
    version: str = "0.0.1"


class AuditConfig(BaseModel):
    path: str = "audit.jsonl"


class Manifest(BaseModel):
    app: AppInfo
    settings: SettingsPayload = SettingsPayload()
    audit: AuditConfig = AuditConfig()
