"""
Notification Infrastructure Layer
=================================
"""

from src.notifications.infrastructure.external import (
    CircuitBreaker,
    CircuitState,
    LoggingNotificationDispatcher,
    WebhookNotificationDispatcher,
    create_dispatcher,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "LoggingNotificationDispatcher",
    "WebhookNotificationDispatcher",
    "create_dispatcher",
]
