from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_BACKEND_ENV = "REGISTRY_BACKEND"
_BASE_URL_ENV = "REGISTRY_BASE_URL"
_ACCESS_TOKEN_ENV = "REGISTRY_ACCESS_TOKEN"
_TIMEOUT_ENV = "REGISTRY_TIMEOUT_SECONDS"
_MOCK_PATH_ENV = "MOCK_REGISTRY_PERSISTENCE_PATH"
_MAX_ATTEMPTS_ENV = "DISPATCH_MAX_ATTEMPTS"
_BASE_DELAY_ENV = "DISPATCH_BASE_DELAY_SECONDS"
_MAX_DELAY_ENV = "DISPATCH_MAX_DELAY_SECONDS"
_CONCURRENCY_ENV = "DISPATCH_CONCURRENCY"
_DEADLINE_ENV = "DISPATCH_DEADLINE_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_BACKENDS = {"mock", "http"}


@dataclass(frozen=True)
class Settings:
    registry_backend: str
    registry_base_url: str
    registry_access_token: Optional[str]
    registry_timeout: float
    mock_registry_path: Optional[str]
    max_attempts: int
    base_delay: float
    max_delay: float
    concurrency: int
    deadline: Optional[float]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float(name: str, default: Optional[float], allow_zero: bool = False) -> Optional[float]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_backend(default: str) -> str:
    candidate = _read_str_env(_BACKEND_ENV, default).lower()
    return candidate if candidate in _BACKENDS else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        registry_backend=_read_backend("mock"),
        registry_base_url=_read_str_env(_BASE_URL_ENV, "https://cloudiot.googleapis.com/v1"),
        registry_access_token=_read_optional_env(_ACCESS_TOKEN_ENV, None),
        registry_timeout=_read_float(_TIMEOUT_ENV, 30.0),
        mock_registry_path=_read_optional_env(_MOCK_PATH_ENV, "./tmp/mock_registry.json"),
        max_attempts=_read_positive_int(_MAX_ATTEMPTS_ENV, 3),
        base_delay=_read_float(_BASE_DELAY_ENV, 0.5, allow_zero=True),
        max_delay=_read_float(_MAX_DELAY_ENV, 30.0, allow_zero=True),
        concurrency=_read_positive_int(_CONCURRENCY_ENV, 1),
        deadline=_read_float(_DEADLINE_ENV, None),
        log_level=_read_log_level("INFO"),
    )
