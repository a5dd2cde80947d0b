"""
SLA Domain Layer
================

Domain layer for SLA monitoring module.

Contains:
- Entities: Results of monitor jobs (SweepResult, DailySummary)
- Value Objects: Immutable objects defined by attributes (SLAPolicy, SLAPolicyConfig, SLAEvaluation)
- Domain Services: Stateless business logic (DeadlineCalculator, SLAEvaluator, SLAMetricsCalculator)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.entities import SweepResult, DailySummary
from src.sla.domain.value_objects import (
    SLAPolicy,
    SLAPolicyConfig,
    ISLAPolicyProvider,
    StaticPolicyProvider,
    DeadlineCalculator,
    SLAEvaluation,
    SLAEvaluator,
    SLAMetricsCalculator,
    format_time_remaining,
    parse_severity,
)

__all__ = [
    # Entities
    "SweepResult",
    "DailySummary",
    # Value Objects & Services
    "SLAPolicy",
    "SLAPolicyConfig",
    "ISLAPolicyProvider",
    "StaticPolicyProvider",
    "DeadlineCalculator",
    "SLAEvaluation",
    "SLAEvaluator",
    "SLAMetricsCalculator",
    "format_time_remaining",
    "parse_severity",
]
