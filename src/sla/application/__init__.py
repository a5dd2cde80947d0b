"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: the periodic sweep and the daily summary
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.dto import (
    IncidentSLAResponse,
    SweepResultResponse,
    PolicyRowResponse,
    PolicyTableResponse,
    SchedulerStatusResponse,
)
from src.sla.application.services import (
    SLAMonitorService,
    DailySummaryService,
    SweepOutcome,
    classify_change,
)

__all__ = [
    # DTOs
    "IncidentSLAResponse",
    "SweepResultResponse",
    "PolicyRowResponse",
    "PolicyTableResponse",
    "SchedulerStatusResponse",
    # Services
    "SLAMonitorService",
    "DailySummaryService",
    "SweepOutcome",
    "classify_change",
]
