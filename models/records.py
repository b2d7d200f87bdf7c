"""Domain models shared across services."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

ConfigPayload = Mapping[str, Any]

FAN_SPEED_MIN = 0
FAN_SPEED_MAX = 100


class ErrorKind(str, Enum):
    """Classification attached to a failed dispatch."""

    encoding = "encoding"
    invalid_address = "invalid_address"
    unauthenticated = "unauthenticated"
    not_found = "not_found"
    unavailable = "unavailable"
    invalid_argument = "invalid_argument"
    cancelled = "cancelled"
    internal = "internal"


@dataclass(frozen=True, slots=True)
class DeviceAddress:
    """Identifies one device inside a registry."""

    project_id: str
    location: str
    registry_id: str
    device_id: str

    def __str__(self) -> str:
        return f"{self.project_id}/{self.location}/{self.registry_id}/{self.device_id}"


@dataclass(frozen=True, slots=True)
class DispatchRequest:
    """A payload bound for one device. The payload is copied and frozen."""

    address: DeviceAddress
    payload: ConfigPayload

    def __post_init__(self) -> None:
        if isinstance(self.payload, Mapping):
            try:
                frozen = freeze_payload(self.payload)
            except (TypeError, ValueError, RecursionError):
                # Left for the encoder to reject.
                frozen = MappingProxyType(dict(self.payload))
            object.__setattr__(self, "payload", frozen)


def freeze_payload(value: Any, _active: FrozenSet[int] = frozenset()) -> Any:
    """Deep copy with mappings as ``MappingProxyType`` and lists as tuples."""
    if isinstance(value, (Mapping, list, tuple)):
        if id(value) in _active:
            raise ValueError("Config payload contains a reference cycle.")
        active = _active | {id(value)}
        if isinstance(value, Mapping):
            return MappingProxyType(
                {key: freeze_payload(item, active) for key, item in value.items()}
            )
        return tuple(freeze_payload(item, active) for item in value)
    return copy.deepcopy(value)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of delivering one request."""

    address: DeviceAddress
    success: bool
    completed_at: datetime
    attempts: int = 0
    device_path: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    duration_ms: int = 0


@dataclass(slots=True)
class FanConfig:
    """Fan on/off and speed, the payload the weather trigger pushes."""

    on: bool = True
    speed: int = 20

    def __post_init__(self) -> None:
        if isinstance(self.speed, bool) or not isinstance(self.speed, int):
            raise ValueError("Fan speed must be an integer.")
        if not FAN_SPEED_MIN <= self.speed <= FAN_SPEED_MAX:
            raise ValueError(
                f"Fan speed must be between {FAN_SPEED_MIN} and {FAN_SPEED_MAX}, got {self.speed}."
            )

    def as_payload(self) -> Dict[str, Any]:
        return {"on": bool(self.on), "speed": self.speed}
