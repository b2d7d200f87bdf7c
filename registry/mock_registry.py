from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional, Set

from models.errors import InvalidAddressError, InvalidArgumentError, NotFoundError
from services.paths import PathResolver
from settings import get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceConfig:
    version: int
    binary_data: str
    cloud_update_time: str


class MockDeviceRegistry:
    """In-process registry that records every config pushed to it."""

    def __init__(
        self,
        name: str = "mock-registry",
        persistence_path: Optional[Path] = None,
        known_devices: Optional[Iterable[str]] = None,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._known: Optional[Set[str]] = set(known_devices) if known_devices is not None else None
        self._configs: Dict[str, List[DeviceConfig]] = {}
        self._resolver = PathResolver()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def register_device(self, path: str) -> None:
        self._resolver.parse(path)
        with self._lock:
            if self._known is not None:
                self._known.add(path)

    def push_config(
        self,
        path: str,
        encoded_payload: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        try:
            self._resolver.parse(path)
        except InvalidAddressError as exc:
            raise InvalidArgumentError(exc.message) from exc
        try:
            base64.b64decode(encoded_payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidArgumentError("binaryData is not valid base64.") from exc

        with self._lock:
            if self._known is not None and path not in self._known:
                raise NotFoundError(f"Device {path!r} not found in registry {self.name!r}.")
            history = self._configs.setdefault(path, [])
            history.append(
                DeviceConfig(
                    version=len(history) + 1,
                    binary_data=encoded_payload,
                    cloud_update_time=datetime.now(timezone.utc).isoformat(),
                )
            )
            self._persist()

    def latest_config(self, path: str) -> Optional[DeviceConfig]:
        with self._lock:
            history = self._configs.get(path)
            return history[-1] if history else None

    def config_history(self, path: str) -> List[DeviceConfig]:
        with self._lock:
            return list(self._configs.get(path, []))

    def close(self) -> None:
        return None

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            path: [asdict(config) for config in history]
            for path, history in self._configs.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        try:
            configs = {
                path: [DeviceConfig(**entry) for entry in history]
                for path, history in data.items()
            }
        except (AttributeError, TypeError):
            LOGGER.warning(
                "Ignoring malformed registry file %s", self.persistence_path
            )
            return
        self._configs.update(configs)


@lru_cache
def build_default_registry(path: Optional[str] = None) -> MockDeviceRegistry:
    settings = get_settings()
    registry_path = settings.mock_registry_path if path is None else path
    persistence = Path(registry_path) if registry_path else None
    return MockDeviceRegistry(persistence_path=persistence)
