"""Unit tests for the in-memory device registry."""

from __future__ import annotations

import json

import pytest

from models.errors import InvalidArgumentError, NotFoundError
from models.records import DeviceAddress, DispatchRequest, ErrorKind
from registry.base import RegistryClient
from registry.mock_registry import MockDeviceRegistry
from services.dispatcher import DispatchEngine
from services.encoder import PayloadEncoder

_PATH = "projects/proj1/locations/us-central1/registries/reg1/devices/dev1"


def test_satisfies_registry_client_protocol() -> None:
    assert isinstance(MockDeviceRegistry(), RegistryClient)


def test_push_records_versioned_history() -> None:
    registry = MockDeviceRegistry()

    registry.push_config(_PATH, "eyJvbiI6dHJ1ZX0=")
    registry.push_config(_PATH, "eyJvbiI6ZmFsc2V9")

    history = registry.config_history(_PATH)
    assert [config.version for config in history] == [1, 2]
    latest = registry.latest_config(_PATH)
    assert latest is not None
    assert latest.binary_data == "eyJvbiI6ZmFsc2V9"
    assert registry.latest_config("projects/p/locations/l/registries/r/devices/other") is None


def test_known_device_set_rejects_unknown_devices() -> None:
    registry = MockDeviceRegistry(known_devices=[_PATH])

    registry.push_config(_PATH, "e30=")
    with pytest.raises(NotFoundError, match="not found"):
        registry.push_config(_PATH.replace("dev1", "dev2"), "e30=")

    registry.register_device(_PATH.replace("dev1", "dev2"))
    registry.push_config(_PATH.replace("dev1", "dev2"), "e30=")


@pytest.mark.parametrize(
    ("path", "payload"),
    [
        ("devices/dev1", "e30="),
        (_PATH, "***"),
    ],
)
def test_invalid_arguments_are_rejected(path: str, payload: str) -> None:
    with pytest.raises(InvalidArgumentError):
        MockDeviceRegistry().push_config(path, payload)


def test_history_persists_to_disk_and_reloads(tmp_path) -> None:
    path = tmp_path / "registry.json"
    registry = MockDeviceRegistry(persistence_path=path)

    registry.push_config(_PATH, "e30=")

    payload = json.loads(path.read_text())
    assert payload[_PATH][0]["version"] == 1

    reloaded = MockDeviceRegistry(persistence_path=path)
    assert reloaded.config_history(_PATH) == registry.config_history(_PATH)


def test_engine_delivers_decodable_payload_to_registry() -> None:
    registry = MockDeviceRegistry(known_devices=[_PATH])
    engine = DispatchEngine(client=registry)
    good = DispatchRequest(
        address=DeviceAddress("proj1", "us-central1", "reg1", "dev1"),
        payload={"on": True, "speed": 40},
    )
    unknown = DispatchRequest(
        address=DeviceAddress("proj1", "us-central1", "reg1", "ghost"),
        payload={"on": False},
    )

    results = engine.dispatch_many([good, unknown])

    assert results[0].success is True
    assert results[1].error_kind is ErrorKind.not_found
    latest = registry.latest_config(_PATH)
    assert latest is not None
    assert PayloadEncoder().decode(latest.binary_data) == {"on": True, "speed": 40}
    engine.shutdown()


@pytest.mark.parametrize(
    "content",
    [
        "[1, 2, 3]",
        json.dumps({_PATH: [{"version": 1}]}),
        json.dumps({_PATH: 7}),
    ],
)
def test_malformed_persistence_file_is_ignored(tmp_path, content: str) -> None:
    path = tmp_path / "registry.json"
    path.write_text(content)

    registry = MockDeviceRegistry(persistence_path=path)

    assert registry.config_history(_PATH) == []
    registry.push_config(_PATH, "e30=")
    assert [config.version for config in registry.config_history(_PATH)] == [1]
