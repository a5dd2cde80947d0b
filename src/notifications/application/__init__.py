"""
Notification Application Layer
==============================
"""

from src.notifications.application.services import (
    INotificationDispatcher,
    NotificationPublisher,
)

__all__ = ["INotificationDispatcher", "NotificationPublisher"]
