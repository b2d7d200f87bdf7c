"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import DeviceAddress, DispatchRequest


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceAddressIn(_CamelModel):
    """Identity of the target device. Path safety is checked by the engine."""

    project_id: str = Field(..., description="Cloud project that owns the registry.")
    location: str = Field(..., description="Registry region, e.g. us-central1.")
    registry_id: str
    device_id: str

    def to_domain(self) -> DeviceAddress:
        return DeviceAddress(
            project_id=self.project_id,
            location=self.location,
            registry_id=self.registry_id,
            device_id=self.device_id,
        )


class DispatchItem(_CamelModel):
    """One device address and the config payload to push to it."""

    device_address: DeviceAddressIn
    payload: Dict[str, Any] = Field(..., description="JSON object delivered as the device config.")

    def to_domain(self) -> DispatchRequest:
        return DispatchRequest(address=self.device_address.to_domain(), payload=self.payload)


class DispatchOutcome(_CamelModel):
    """Per-device result returned from ``POST /dispatch``."""

    device_address: DeviceAddressIn
    device_path: Optional[str] = None
    success: bool
    attempts: int = Field(..., ge=0)
    error_kind: Optional[str] = None
    error: Optional[str] = None
    completed_at: str
    duration_ms: int = Field(..., ge=0)

