"""Delivery transports for outbound activities.

Recipient expansion, HTTP signatures, queueing and retries live behind the
delivery relay. This module only hands an activity and its recipient
description over to it. It includes:

- HTTP client with JWT authentication and idempotency keys
- Circuit breaker pattern for fault tolerance
- Metrics collection for monitoring
- A logging-only transport for deployments without a relay
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx
from jose import jwt

from notestage.federation.objects import Activity

logger = logging.getLogger(__name__)

HTTP_INTERNAL_SERVER_ERROR = 500
ACCEPTED_STATUSES = (200, 201, 202)


class TransportError(RuntimeError):
    """Base exception raised when an activity cannot be handed over for delivery."""


class TransportDisabledError(TransportError):
    """Raised when delivery is attempted while no relay is configured."""


@dataclass(frozen=True)
class DeliveryOptions:
    """How the relay should expand and filter recipients.

    Attributes:
        prefer_shared_inbox: Deliver once per shared inbox where remote
            servers advertise one.
        exclude_base_uris: Recipients under these base URIs are skipped; used
            to keep deliveries off the local server.
    """

    prefer_shared_inbox: bool = True
    exclude_base_uris: tuple[str, ...] = ()


class DeliveryTransport(Protocol):
    """Anything able to send an activity on behalf of a local sender."""

    async def send_activity(
        self,
        sender: str,
        recipients: str,
        activity: Activity,
        options: DeliveryOptions,
    ) -> None: ...


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class DeliveryMetrics:
    """Counters for relay requests."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    activity_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self,
        activity_type: str,
        response_time: float,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """Record one relay request."""
        self.request_count += 1
        self.total_response_time += response_time
        self.activity_counts[activity_type] += 1
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_success_rate(self) -> float:
        """Get success rate as a percentage."""
        return (self.success_count / self.request_count * 100) if self.request_count > 0 else 0.0


@dataclass
class CircuitBreaker:
    """Stops calling the relay after repeated failures, then probes it again."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: int = 3

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open."""
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    @property
    def state(self) -> CircuitState:
        return self._state


@dataclass(frozen=True)
class RelayConfig:
    """Immutable configuration for the delivery relay client."""

    base_url: str | None
    shared_secret: str | None
    audience: str
    issuer: str
    token_ttl_seconds: int = 300
    timeout_seconds: float = 10.0


class RelayDeliveryTransport:
    """HTTP client handing activities to the delivery relay."""

    def __init__(
        self,
        config: RelayConfig,
        *,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.config = config
        self._client = client
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self.metrics = DeliveryMetrics()

    @property
    def enabled(self) -> bool:
        return bool(self.config.base_url)

    @property
    def circuit_state(self) -> CircuitState:
        return self._circuit_breaker.state

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise TransportDisabledError("Delivery relay is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    def _build_auth_headers(self, *, idempotency_key: str) -> dict[str, str]:
        headers = {"Idempotency-Key": idempotency_key}
        if self.config.shared_secret:
            now = int(time.time())
            payload = {
                "iss": self.config.issuer,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(payload, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def send_activity(
        self,
        sender: str,
        recipients: str,
        activity: Activity,
        options: DeliveryOptions,
    ) -> None:
        """Post an activity to the relay's ``/deliveries`` endpoint.

        Raises:
            TransportDisabledError: If no relay is configured.
            TransportError: If the circuit is open, the relay is unreachable or
                it does not accept the delivery.
        """
        if self._circuit_breaker.is_open():
            logger.warning("Delivery relay circuit open; refusing %s %s", activity.type, activity.id)
            raise TransportError("Delivery relay circuit breaker is open")

        client = await self._ensure_client()
        payload: dict[str, Any] = {
            "sender": sender,
            "recipients": recipients,
            "activity": activity.to_activitypub(),
            "preferSharedInbox": options.prefer_shared_inbox,
            "excludeBaseUris": list(options.exclude_base_uris),
        }
        headers = self._build_auth_headers(idempotency_key=activity.id)

        start_time = time.monotonic()
        success = False
        error_type: str | None = None
        try:
            response = await client.post("/deliveries", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self._circuit_breaker.record_failure()
            error_type = "network_error"
            raise TransportError(f"Delivery relay request failed: {exc}") from exc
        else:
            if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
                self._circuit_breaker.record_failure()
                error_type = f"http_{response.status_code}"
                raise TransportError(f"Delivery relay responded with {response.status_code}")
            self._circuit_breaker.record_success()
            if response.status_code not in ACCEPTED_STATUSES:
                error_type = f"http_{response.status_code}"
                raise TransportError(
                    f"Delivery relay rejected {activity.type} {activity.id} "
                    f"({response.status_code})"
                )
            success = True
            logger.info("Handed %s %s to delivery relay", activity.type, activity.id)
        finally:
            self.metrics.record_request(
                activity.type, time.monotonic() - start_time, success, error_type
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LoggingDeliveryTransport:
    """Transport used when no relay is configured: activities are only logged."""

    async def send_activity(
        self,
        sender: str,
        recipients: str,
        activity: Activity,
        options: DeliveryOptions,
    ) -> None:
        logger.info(
            "Delivery disabled; not sending %s %s from %s to %s",
            activity.type,
            activity.id,
            sender,
            recipients,
        )
        logger.debug("Undelivered activity: %s", json.dumps(activity.to_activitypub()))

    async def close(self) -> None:
        return None
