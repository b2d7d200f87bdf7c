from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_LOCATION = "us-central1"

_PROJECT_ENV = "DEVICE_PROJECT_ID"
_LOCATION_ENV = "DEVICE_LOCATION"
_REGISTRY_ENV = "DEVICE_REGISTRY_ID"
_DEVICE_ENV = "DEVICE_ID"


@dataclass(frozen=True)
class CLIConfig:
    project_id: Optional[str] = None
    location: str = DEFAULT_LOCATION
    registry_id: Optional[str] = None
    device_id: Optional[str] = None


def _read_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def load_config(
    project_id: Optional[str] = None,
    location: Optional[str] = None,
    registry_id: Optional[str] = None,
    device_id: Optional[str] = None,
) -> CLIConfig:
    """Merge explicit identity options over ``DEVICE_*`` environment defaults."""
    return CLIConfig(
        project_id=project_id or _read_env(_PROJECT_ENV),
        location=location or _read_env(_LOCATION_ENV) or DEFAULT_LOCATION,
        registry_id=registry_id or _read_env(_REGISTRY_ENV),
        device_id=device_id or _read_env(_DEVICE_ENV),
    )
