from __future__ import annotations

from typing import Iterable

from registry.http_client import HttpRegistryClient
from registry.mock_registry import MockDeviceRegistry, build_default_registry
from services.dispatcher import build_default_engine
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (get_settings, build_default_registry, build_default_engine)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    registry_path = tmp_path / "registry.json"

    monkeypatch.setenv("MOCK_REGISTRY_PERSISTENCE_PATH", str(registry_path))
    monkeypatch.setenv("DISPATCH_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DISPATCH_BASE_DELAY_SECONDS", "0.25")
    monkeypatch.setenv("DISPATCH_CONCURRENCY", "4")
    monkeypatch.setenv("DISPATCH_DEADLINE_SECONDS", "12.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    _clear_caches(_CACHES)

    settings = get_settings()
    engine = build_default_engine()

    try:
        assert settings.deadline == 12.5
        assert settings.log_level == "DEBUG"
        assert isinstance(engine.client, MockDeviceRegistry)
        assert engine.client.persistence_path == registry_path
        assert engine.retry_policy.max_attempts == 5
        assert engine.retry_policy.base_delay == 0.25
        assert engine.concurrency == 4
        assert engine.executor._max_workers == 4
    finally:
        engine.shutdown()
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DISPATCH_MAX_ATTEMPTS", "zero")
    monkeypatch.setenv("DISPATCH_CONCURRENCY", "-3")
    monkeypatch.setenv("DISPATCH_BASE_DELAY_SECONDS", " ")
    monkeypatch.setenv("REGISTRY_BACKEND", "carrier-pigeon")
    monkeypatch.setenv("REGISTRY_TIMEOUT_SECONDS", "0")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.max_attempts == 3
        assert settings.concurrency == 1
        assert settings.base_delay == 0.5
        assert settings.registry_backend == "mock"
        assert settings.registry_timeout == 30.0
        assert settings.deadline is None
    finally:
        get_settings.cache_clear()


def test_http_backend_builds_http_client(monkeypatch) -> None:
    monkeypatch.setenv("REGISTRY_BACKEND", "HTTP")
    monkeypatch.setenv("REGISTRY_BASE_URL", "https://registry.test/v1")
    monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "token-123")
    _clear_caches(_CACHES)

    engine = build_default_engine()
    try:
        assert isinstance(engine.client, HttpRegistryClient)
    finally:
        engine.shutdown()
        _clear_caches(_CACHES)
