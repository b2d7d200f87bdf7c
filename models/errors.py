"""Error taxonomy for configuration dispatch.

Every failure the engine knows how to classify is a ``DispatchError`` carrying
an :class:`~models.records.ErrorKind`. Only ``UnavailableError`` is retryable.
"""

from __future__ import annotations

from typing import Optional

from models.records import ErrorKind


class DispatchError(Exception):
    """Base class for classified dispatch failures."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EncodingError(DispatchError):
    """The payload cannot be represented in the canonical encoding."""

    kind = ErrorKind.encoding


class InvalidAddressError(DispatchError):
    """A device address field is empty or not path safe."""

    kind = ErrorKind.invalid_address


class RemoteError(DispatchError):
    """The registry rejected or failed the config push."""

    kind: ErrorKind = ErrorKind.internal

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnauthenticatedError(RemoteError):
    kind = ErrorKind.unauthenticated


class NotFoundError(RemoteError):
    kind = ErrorKind.not_found


class UnavailableError(RemoteError):
    kind = ErrorKind.unavailable
    retryable = True


class InvalidArgumentError(RemoteError):
    kind = ErrorKind.invalid_argument


class DispatchCancelled(DispatchError):
    """The caller's cancellation token fired before the request finished."""

    kind = ErrorKind.cancelled


CALLER_FAULTS = frozenset(
    {ErrorKind.encoding, ErrorKind.invalid_address, ErrorKind.invalid_argument}
)
