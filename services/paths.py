"""Device resource path construction and parsing."""

from __future__ import annotations

import re

from models.errors import InvalidAddressError
from models.records import DeviceAddress

_SEGMENT_PATTERN = re.compile(r"[A-Za-z0-9._~+%-]+")
_PATH_PATTERN = re.compile(
    r"projects/(?P<project_id>[^/]+)/locations/(?P<location>[^/]+)"
    r"/registries/(?P<registry_id>[^/]+)/devices/(?P<device_id>[^/]+)"
)

_FIELDS = (
    ("project_id", "project ID"),
    ("location", "location"),
    ("registry_id", "registry ID"),
    ("device_id", "device ID"),
)


class PathResolver:
    """Builds ``projects/{p}/locations/{l}/registries/{r}/devices/{d}`` paths."""

    def resolve(self, address: DeviceAddress) -> str:
        for attribute, label in _FIELDS:
            _check_segment(getattr(address, attribute), label)
        return (
            f"projects/{address.project_id}/locations/{address.location}"
            f"/registries/{address.registry_id}/devices/{address.device_id}"
        )

    def parse(self, path: str) -> DeviceAddress:
        match = _PATH_PATTERN.fullmatch(path or "")
        if match is None:
            raise InvalidAddressError(f"Malformed device path {path!r}.")
        address = DeviceAddress(**match.groupdict())
        for attribute, label in _FIELDS:
            _check_segment(getattr(address, attribute), label)
        return address


def _check_segment(value: object, label: str) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidAddressError(f"Device {label} must be a non-empty string.")
    if value in {".", ".."} or not _SEGMENT_PATTERN.fullmatch(value):
        raise InvalidAddressError(f"Device {label} {value!r} is not a valid path segment.")
