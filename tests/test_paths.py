from __future__ import annotations

import pytest

from models.errors import InvalidAddressError
from models.records import DeviceAddress
from services.paths import PathResolver


@pytest.fixture()
def resolver() -> PathResolver:
    return PathResolver()


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        (
            DeviceAddress("proj1", "us-central1", "reg1", "dev1"),
            "projects/proj1/locations/us-central1/registries/reg1/devices/dev1",
        ),
        (
            DeviceAddress("my-project-42", "europe-west1", "fans.v2", "fan_01~a+b%20"),
            "projects/my-project-42/locations/europe-west1/registries/fans.v2/devices/fan_01~a+b%20",
        ),
    ],
)
def test_resolve_formats_device_path(resolver: PathResolver, address: DeviceAddress, expected: str) -> None:
    assert resolver.resolve(address) == expected


@pytest.mark.parametrize(
    "address",
    [
        DeviceAddress("", "loc", "reg", "dev"),
        DeviceAddress("proj", "", "reg", "dev"),
        DeviceAddress("proj", "loc", "", "dev"),
        DeviceAddress("proj", "loc", "reg", ""),
    ],
)
def test_resolve_rejects_empty_fields(resolver: PathResolver, address: DeviceAddress) -> None:
    with pytest.raises(InvalidAddressError, match="non-empty"):
        resolver.resolve(address)


@pytest.mark.parametrize(
    "device_id",
    ["dev/1", "dev 1", " ", "dev?x", "dev#x", "dev:modify", "..", ".", "dev\n", "dévice"],
)
def test_resolve_rejects_unsafe_segments(resolver: PathResolver, device_id: str) -> None:
    address = DeviceAddress("proj", "loc", "reg", device_id)

    with pytest.raises(InvalidAddressError, match="device ID"):
        resolver.resolve(address)


def test_parse_inverts_resolve(resolver: PathResolver) -> None:
    address = DeviceAddress("proj1", "us-central1", "reg1", "dev1")

    assert resolver.parse(resolver.resolve(address)) == address


@pytest.mark.parametrize(
    "path",
    [
        "",
        "projects/p/locations/l/registries/r",
        "projects/p/locations/l/registries/r/devices/d/extra",
        "project/p/locations/l/registries/r/devices/d",
        "projects/p/locations/l/registries/r/devices/..",
    ],
)
def test_parse_rejects_malformed_paths(resolver: PathResolver, path: str) -> None:
    with pytest.raises(InvalidAddressError):
        resolver.parse(path)
