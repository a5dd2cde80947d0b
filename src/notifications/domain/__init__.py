"""
Notification Domain Layer
=========================
"""

from src.notifications.domain.entities import NotificationEvent, NotificationPriority

__all__ = ["NotificationEvent", "NotificationPriority"]
