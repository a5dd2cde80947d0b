"""
Notifications Module
====================

Bounded Context for outbound notifications.

Responsibilities:
- Shape lifecycle and SLA events for the right recipients
- Deliver them through a webhook or the log, never failing the caller
"""

__version__ = "1.0.0"
