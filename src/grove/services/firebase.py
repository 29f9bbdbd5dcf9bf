"""Firebase Realtime Database backend.

This module provides the FirebaseBackend class that implements the store's
four key-value primitives over the Firebase REST API. It includes:

- An async HTTP client created lazily and shared by concurrent requests
- Circuit breaker pattern for fault tolerance
- Metrics collection for monitoring
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from grove.services.backend import BackendError, BackendPath, BackendUnavailableError, join_path

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from grove.core.settings import Settings

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


class CircuitState(Enum):
    """Circuit breaker states for fault tolerance."""

    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Testing if service is back - limited requests allowed


@dataclass
class BackendMetrics:
    """Metrics collection for backend requests."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    max_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    method_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, method: str, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.max_response_time = max(self.max_response_time, response_time)
        self.method_counts[method] += 1

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        """Get average response time."""
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding the database."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 2

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open."""
        if self._state == CircuitState.OPEN:
            if time.time() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        """Record a successful operation."""
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed operation."""
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._failure_count >= self.failure_threshold and self._state != CircuitState.OPEN:
            logger.warning("Firebase circuit breaker opened after %d failures", self._failure_count)
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitState:
        """Get the current circuit breaker state."""
        return self._state


@dataclass(frozen=True)
class FirebaseConfig:
    """Immutable configuration for the Firebase backend."""

    base_url: str
    auth: str | None
    namespace: str
    timeout_seconds: float


def load_firebase_config(config: Settings) -> FirebaseConfig:
    """Build configuration object from application settings."""
    if not config.firebase_url:
        raise BackendError("STORAGE_BACKEND=firebase requires FIREBASE_URL")
    return FirebaseConfig(
        base_url=config.firebase_url.rstrip("/"),
        auth=config.firebase_auth,
        namespace=config.storage_namespace,
        timeout_seconds=float(config.backend_timeout_seconds),
    )


class FirebaseBackend:
    """HTTP client wrapper for the Firebase Realtime Database REST API."""

    def __init__(
        self,
        config: FirebaseConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = CircuitBreaker()
        self._metrics = BackendMetrics()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    def _url(self, path: BackendPath) -> str:
        segments = [self.config.namespace, *path] if self.config.namespace else list(path)
        return f"/{join_path(segments)}.json"

    async def _request(self, method: str, path: BackendPath, json_data: Any | None = None) -> Any:
        if self._circuit_breaker.is_open():
            raise BackendUnavailableError("Firebase circuit breaker is open - service unavailable")

        client = await self._ensure_client()
        url = self._url(path)
        params = {"auth": self.config.auth} if self.config.auth else None

        start_time = time.time()
        success = False
        error_type = None

        try:
            response = await client.request(method, url, json=json_data, params=params)
            if response.status_code >= HTTP_BAD_REQUEST:
                error_type = f"http_{response.status_code}"
                # Rule rejections are answered, not failures of the service.
                if response.status_code >= 500:
                    self._circuit_breaker.record_failure()
                raise BackendError(f"Firebase responded with {response.status_code} to {method} {url}")
            self._circuit_breaker.record_success()
            try:
                body = response.json()
            except ValueError as exc:
                error_type = "invalid_json"
                raise BackendError(f"Firebase returned a body that is not JSON for {method} {url}") from exc
            success = True
            logger.debug("Firebase %s %s -> %d", method, url, response.status_code)
            return body
        except httpx.HTTPError as exc:
            self._circuit_breaker.record_failure()
            error_type = "network_error"
            raise BackendError(f"Firebase request failed: {exc}") from exc
        finally:
            self._metrics.record_request(method, time.time() - start_time, success, error_type)

    async def get(self, path: BackendPath) -> Any | None:
        return await self._request("GET", path)

    async def set(self, path: BackendPath, value: Any) -> None:
        await self._request("PUT", path, value)

    async def update(self, path: BackendPath, value: Mapping[str, Any]) -> None:
        await self._request("PATCH", path, dict(value))

    async def push(self, path: BackendPath, value: Any) -> str:
        body = await self._request("POST", path, value)
        if not isinstance(body, dict) or "name" not in body:
            raise BackendError("Firebase push response carried no generated key")
        return str(body["name"])

    def get_metrics(self) -> dict[str, Any]:
        """Get request metrics."""
        return {
            "request_count": self._metrics.request_count,
            "success_count": self._metrics.success_count,
            "error_count": self._metrics.error_count,
            "average_response_time": self._metrics.get_average_response_time(),
            "max_response_time": self._metrics.max_response_time,
            "error_counts_by_type": dict(self._metrics.error_counts_by_type),
            "method_counts": dict(self._metrics.method_counts),
            "circuit_state": self._circuit_breaker.get_state().value,
        }

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
