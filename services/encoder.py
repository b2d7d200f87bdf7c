"""Canonical JSON and base64 encoding for config payloads."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from models.errors import EncodingError
from models.records import ConfigPayload


@dataclass(frozen=True, slots=True)
class EncodedPayload:
    """Canonical JSON bytes and their base64 transport form."""

    canonical: bytes
    text: str


class PayloadEncoder:
    """Pure encoding component that can be unit tested in isolation."""

    def encode(self, payload: ConfigPayload) -> EncodedPayload:
        canonical = self.canonicalize(payload)
        return EncodedPayload(
            canonical=canonical,
            text=base64.b64encode(canonical).decode("ascii"),
        )

    def canonicalize(self, payload: ConfigPayload) -> bytes:
        if not isinstance(payload, Mapping):
            raise EncodingError(
                f"Config payload must be a mapping, got {type(payload).__name__}."
            )
        try:
            document = _thaw(payload)
            text = json.dumps(
                document,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
            return text.encode("utf-8")
        except RecursionError as exc:
            raise EncodingError("Config payload is cyclic or nested too deeply.") from exc
        except UnicodeEncodeError as exc:
            raise EncodingError(f"Config payload holds text that is not valid UTF-8: {exc.reason}") from exc
        except ValueError as exc:
            raise EncodingError(f"Config payload holds a non-finite number: {exc}") from exc
        except TypeError as exc:
            raise EncodingError(f"Config payload is not JSON serialisable: {exc}") from exc

    def decode(self, text: str) -> Dict[str, Any]:
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise EncodingError("Encoded payload is not valid base64.") from exc
        try:
            document = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise EncodingError("Encoded payload is not UTF-8 text.") from exc
        except json.JSONDecodeError as exc:
            raise EncodingError(f"Encoded payload is not valid JSON: {exc.msg}") from exc
        if not isinstance(document, dict):
            raise EncodingError("Encoded payload must decode to a JSON object.")
        return document


def _thaw(value: Any) -> Any:
    # Frozen requests hold MappingProxyType, which json cannot serialise.
    if isinstance(value, Mapping):
        thawed: Dict[Any, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"Config payload keys must be strings, got {key!r}.")
            thawed[key] = _thaw(item)
        return thawed
    if isinstance(value, (list, tuple)):
        return [_thaw(item) for item in value]
    return value
