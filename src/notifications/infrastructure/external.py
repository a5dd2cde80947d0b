"""
Notification Delivery Adapters
==============================

Dispatchers that deliver NotificationEvents to the outside world:
- Webhook delivery over httpx with retry and a circuit breaker
- Log-only delivery for environments without a webhook
"""

import asyncio
import time
from typing import Optional

import httpx

from src.config import settings
from src.core import NotificationDeliveryException
from src.notifications.application.services import INotificationDispatcher
from src.notifications.domain.entities import NotificationEvent
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotificationDispatcher(INotificationDispatcher):
    """
    Posts each event as JSON to a webhook owned by the delivery service.

    Handles:
    - Circuit breaker to stop hammering a dead endpoint
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds or settings.notification_timeout_seconds
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def emit(self, event: NotificationEvent) -> None:
        if not self._circuit_breaker.allow_request():
            raise NotificationDeliveryException(
                "Circuit breaker open, notification dropped",
                {"kind": event.kind.value, "recipient_id": event.recipient_id}
            )

        body = event.to_dict()
        last_error = None

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=body)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.debug(
                        "Notification delivered",
                        extra={"kind": event.kind.value, "recipient_id": event.recipient_id}
                    )
                    return

                last_error = f"webhook returned {response.status_code}"
                logger.warning(
                    "Notification webhook returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "Notification webhook request failed",
                    extra={"error": last_error, "attempt": attempt + 1}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * (2 ** attempt))

        self._circuit_breaker.record_failure()
        raise NotificationDeliveryException(
            f"Delivery failed after {self._max_retries} attempts: {last_error}",
            {"kind": event.kind.value, "recipient_id": event.recipient_id}
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class LoggingNotificationDispatcher(INotificationDispatcher):
    """Writes events to the log instead of delivering them."""

    async def emit(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification",
            extra={
                "kind": event.kind.value,
                "recipient_id": event.recipient_id,
                "incident_id": event.incident_id,
                "priority": event.priority,
                "title": event.payload.get("title"),
            }
        )


def create_dispatcher(webhook_url: Optional[str] = None) -> INotificationDispatcher:
    """Webhook dispatcher when a URL is configured, log-only otherwise."""
    url = webhook_url or settings.notification_webhook_url
    if url:
        return WebhookNotificationDispatcher(url)
    logger.info("No notification webhook configured, logging notifications only")
    return LoggingNotificationDispatcher()
