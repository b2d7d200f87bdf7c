"""Configuration dispatch orchestration: encode, address, push, retry."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Iterable, List, Optional

from models.errors import DispatchCancelled, DispatchError, RemoteError
from models.records import DispatchRequest, DispatchResult, ErrorKind
from registry.base import RegistryClient
from registry.http_client import HttpRegistryClient
from registry.mock_registry import build_default_registry
from services.encoder import PayloadEncoder
from services.paths import PathResolver
from settings import get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient registry failures."""

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative.")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1.")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))


class CancellationToken:
    """Caller-owned cancellation flag with an optional deadline."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        remaining = self.remaining()
        if remaining is not None and remaining <= seconds:
            self._event.wait(remaining)
            self._event.set()
            return True
        self._event.wait(seconds)
        return self.cancelled


class DispatchEngine:
    """Delivers config payloads to devices through a ``RegistryClient``."""

    def __init__(
        self,
        client: RegistryClient,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: int = 1,
        encoder: Optional[PayloadEncoder] = None,
        resolver: Optional[PathResolver] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1.")
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = concurrency
        self.encoder = encoder or PayloadEncoder()
        self.resolver = resolver or PathResolver()
        self.executor = ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="dispatch"
        )
        self._sleep = sleep

    def dispatch_one(
        self,
        request: DispatchRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DispatchResult:
        token = cancel_token or CancellationToken()
        started = time.perf_counter()

        if token.cancelled:
            return self._finish(
                request, started, 0, None, DispatchCancelled("Dispatch cancelled before it started.")
            )

        try:
            encoded = self.encoder.encode(request.payload)
            path = self.resolver.resolve(request.address)
        except DispatchError as exc:
            return self._finish(request, started, 0, None, exc)
        except Exception as exc:  # noqa: BLE001 - one bad request must not sink the batch
            LOGGER.exception(
                "Could not prepare config request",
                extra={"device_path": str(request.address)},
            )
            return self._finish(request, started, 0, None, exc)

        attempts = 0
        while True:
            if token.cancelled:
                reason = "before it started" if attempts == 0 else "between retries"
                return self._finish(
                    request, started, attempts, path, DispatchCancelled(f"Dispatch cancelled {reason}.")
                )
            attempts += 1
            try:
                self.client.push_config(path, encoded.text, timeout=token.remaining())
            except RemoteError as exc:
                if not exc.retryable or attempts >= self.retry_policy.max_attempts:
                    return self._finish(request, started, attempts, path, exc)
                delay = self.retry_policy.delay_for(attempts)
                LOGGER.warning(
                    "Registry unavailable, retrying: %s",
                    exc.message,
                    extra={
                        "device_path": path,
                        "attempt": attempts,
                        "error_kind": exc.kind,
                        "delay_s": delay,
                    },
                )
                if self._backoff(token, delay):
                    cancelled = DispatchCancelled(
                        f"Dispatch cancelled during retry backoff; last error: {exc.message}"
                    )
                    return self._finish(request, started, attempts, path, cancelled)
                continue
            except Exception as exc:  # noqa: BLE001 - a buggy client must not sink the batch
                LOGGER.exception(
                    "Registry client raised an unexpected error",
                    extra={"device_path": path, "attempt": attempts},
                )
                return self._finish(request, started, attempts, path, exc)
            return self._finish(request, started, attempts, path, None)

    def dispatch_many(
        self,
        requests: Iterable[DispatchRequest],
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[DispatchResult]:
        batch = list(requests)
        if self.concurrency == 1 or len(batch) <= 1:
            results = [self.dispatch_one(request, cancel_token) for request in batch]
        else:
            futures = [
                self.executor.submit(self.dispatch_one, request, cancel_token)
                for request in batch
            ]
            results = [future.result() for future in futures]

        failed = sum(1 for result in results if not result.success)
        LOGGER.info(
            "Dispatched config batch",
            extra={"request_count": len(results), "failed_count": failed},
        )
        return results

    def shutdown(self) -> None:
        """Release worker threads and the registry client."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.client, "close", None)
        if callable(close):
            close()

    def _backoff(self, token: CancellationToken, delay: float) -> bool:
        if self._sleep is not None:
            self._sleep(delay)
            return token.cancelled
        return token.wait(delay)

    def _finish(
        self,
        request: DispatchRequest,
        started: float,
        attempts: int,
        path: Optional[str],
        error: Optional[BaseException],
    ) -> DispatchResult:
        duration_ms = int((time.perf_counter() - started) * 1000)
        if error is None:
            LOGGER.info(
                "Config delivered",
                extra={"device_path": path, "attempt": attempts, "duration_ms": duration_ms},
            )
            return DispatchResult(
                address=request.address,
                success=True,
                completed_at=datetime.now(timezone.utc),
                attempts=attempts,
                device_path=path,
                duration_ms=duration_ms,
            )

        if isinstance(error, DispatchError):
            kind = error.kind
            detail = error.message
        else:
            kind = ErrorKind.internal
            detail = f"{type(error).__name__}: {error}"
        LOGGER.warning(
            "Config dispatch failed: %s",
            detail,
            extra={
                "device_path": path or str(request.address),
                "attempt": attempts,
                "error_kind": kind,
                "duration_ms": duration_ms,
            },
        )
        return DispatchResult(
            address=request.address,
            success=False,
            completed_at=datetime.now(timezone.utc),
            attempts=attempts,
            device_path=path,
            error_kind=kind,
            error=detail,
            duration_ms=duration_ms,
        )


def build_registry_client() -> RegistryClient:
    settings = get_settings()
    if settings.registry_backend == "http":
        return HttpRegistryClient(
            base_url=settings.registry_base_url,
            access_token=settings.registry_access_token,
            timeout=settings.registry_timeout,
        )
    return build_default_registry()


@lru_cache
def build_default_engine(
    concurrency: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> DispatchEngine:
    """Factory that wires the engine from environment settings."""
    settings = get_settings()
    policy = RetryPolicy(
        max_attempts=max_attempts or settings.max_attempts,
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
    )
    return DispatchEngine(
        client=build_registry_client(),
        retry_policy=policy,
        concurrency=concurrency or settings.concurrency,
    )


def new_cancel_token(deadline: Optional[float] = None) -> CancellationToken:
    """Token honouring ``deadline`` or, when omitted, the configured default."""
    timeout = deadline if deadline is not None else get_settings().deadline
    return CancellationToken(timeout=timeout)
