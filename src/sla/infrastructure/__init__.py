"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA monitoring:
- External: policy file watcher and the background scheduler
"""

from src.sla.infrastructure.external import (
    PolicyFileHandler,
    SLAPolicyManager,
    SLAScheduler,
    parse_hour_minute,
)

__all__ = [
    "PolicyFileHandler",
    "SLAPolicyManager",
    "SLAScheduler",
    "parse_hour_minute",
]
