from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from models.errors import (
    InvalidArgumentError,
    NotFoundError,
    RemoteError,
    UnauthenticatedError,
    UnavailableError,
)

LOGGER = logging.getLogger(__name__)

_STATUS_ERRORS: Dict[int, type[RemoteError]] = {
    400: InvalidArgumentError,
    401: UnauthenticatedError,
    403: UnauthenticatedError,
    404: NotFoundError,
    408: UnavailableError,
    409: InvalidArgumentError,
    412: InvalidArgumentError,
    422: InvalidArgumentError,
    429: UnavailableError,
}


class HttpRegistryClient:
    """Cloud IoT style REST client for ``modifyCloudToDeviceConfig``."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def push_config(
        self,
        path: str,
        encoded_payload: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        body = {"versionToUpdate": "0", "binaryData": encoded_payload}
        options = {} if timeout is None else {"timeout": timeout}
        try:
            response = self._client.post(
                f"/{path}:modifyCloudToDeviceConfig",
                json=body,
                **options,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._translate_status(exc.response) from exc
        except httpx.TimeoutException as exc:
            raise UnavailableError(f"Registry request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise UnavailableError(f"Registry transport error: {exc}") from exc
        LOGGER.debug("Registry accepted config", extra={"device_path": path})

    @staticmethod
    def _translate_status(response: httpx.Response) -> RemoteError:
        status_code = response.status_code
        detail = _extract_detail(response)
        message = f"Registry returned {status_code}: {detail or 'no detail provided.'}"
        error_cls = _STATUS_ERRORS.get(status_code)
        if error_cls is None:
            error_cls = UnavailableError if status_code >= 500 else InvalidArgumentError
        return error_cls(message, status_code=status_code)


def _extract_detail(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("detail"):
            return str(data["detail"])
    return None
