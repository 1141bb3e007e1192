"""Admission host wire contracts.

The envelope the policy host posts for each request and the two response
records it expects back.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contracts.settings import SettingsPayload


class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str = ""
    kind: GroupVersionKind = GroupVersionKind()
    operation: str = ""
    namespace: str | None = None
    name: str | None = None
    object: Any = None
    old_object: Any = Field(default=None, alias="oldObject")


class ValidationRequest(BaseModel):
    request: AdmissionRequest
    settings: SettingsPayload = SettingsPayload()


class ValidationResponse(BaseModel):
    """Admission verdict in wire form.

    ``message`` is only present on rejection and ``mutatedObject`` only on
    mutation; serialize with ``to_wire``.
    """

    model_config = ConfigDict(populate_by_name=True)

    accepted: bool
    message: str | None = None
    mutated_object: dict[str, Any] | None = Field(default=None, alias="mutatedObject")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SettingsValidationResponse(BaseModel):
    valid: bool
    message: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
