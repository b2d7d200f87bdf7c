"""Contract for the remote device registry."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class RegistryClient(Protocol):
    """Pushes an encoded config to a single device.

    Implementations raise a ``models.errors.RemoteError`` subclass on failure
    and must be safe to call from several worker threads at once.
    """

    def push_config(
        self,
        path: str,
        encoded_payload: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Replace the device's cloud-to-device config with ``encoded_payload``.

        Args:
            path: Fully qualified device path.
            encoded_payload: Base64 text of the canonical payload.
            timeout: Seconds left before the caller's deadline, if any.
        """
        ...

    def close(self) -> None:
        """Release any transport resources."""
        ...
