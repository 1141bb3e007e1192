"""PersistentVolumeClaim shape.

Only the fields the policy reads are modelled; everything else is kept as
extra data and is never re-serialized from here. Mutations operate on the
raw object so unknown fields survive untouched.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    namespace: str | None = None


class PersistentVolumeClaimSpec(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    storage_class_name: str | None = Field(default=None, alias="storageClassName")


class PersistentVolumeClaim(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: Literal["v1"] = Field(alias="apiVersion")
    kind: Literal["PersistentVolumeClaim"]
    metadata: ObjectMeta = ObjectMeta()
    spec: PersistentVolumeClaimSpec | None = None
    status: dict[str, Any] | None = None

    @property
    def storage_class_name(self) -> str:
        """Requested class, with an absent class read as the empty string."""
        if self.spec is None or self.spec.storage_class_name is None:
            return ""
        return self.spec.storage_class_name
