"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization for API responses.
Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.incidents.domain.entities import Incident
from src.sla.domain.entities import SweepResult
from src.sla.domain.value_objects import SLAEvaluation, SLAMetricsCalculator


# ========== Type Aliases for Literals ==========
SLAClassificationStr = Literal["WITHIN_SLA", "APPROACHING_BREACH", "BREACHED"]


# ========== Response DTOs ==========

class IncidentSLAResponse(BaseModel):
    """On-demand SLA view of one incident."""
    incident_id: str
    incident_number: str
    severity: str
    status: str
    sla_deadline: datetime
    sla_clock_started_at: datetime
    classification: SLAClassificationStr = Field(..., description="Current SLA classification")
    remaining_seconds: float = Field(..., description="Time remaining (0 if breached or resolved)")
    percentage_remaining: float
    time_remaining: str = Field(..., description="Human readable, e.g. '5h 12m' or 'Overdue'")
    sla_breached_at: Optional[datetime] = None
    sla_met: Optional[bool] = None
    response_time_minutes: Optional[int] = None
    resolution_time_minutes: Optional[int] = None

    @classmethod
    def build(cls, incident: Incident, evaluation: SLAEvaluation) -> "IncidentSLAResponse":
        return cls(
            incident_id=incident.id,
            incident_number=incident.incident_number,
            severity=incident.severity.value,
            status=incident.status.value,
            sla_deadline=incident.sla_deadline,
            sla_clock_started_at=incident.sla_clock_started_at,
            classification=evaluation.classification.value,
            remaining_seconds=evaluation.remaining_seconds,
            percentage_remaining=evaluation.percentage_remaining,
            time_remaining=evaluation.time_remaining,
            sla_breached_at=incident.sla_breached_at,
            sla_met=incident.sla_met,
            response_time_minutes=SLAMetricsCalculator.response_time_minutes(incident),
            resolution_time_minutes=SLAMetricsCalculator.resolution_time_minutes(incident),
        )


class SweepResultResponse(BaseModel):
    """Counts from one SLA sweep."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    evaluated: int
    warnings: int
    breaches: int
    downgrades: int
    failed: int
    failed_incident_ids: List[str] = Field(default_factory=list)
    skipped: bool = False
    timed_out: bool = False

    @classmethod
    def from_result(cls, result: SweepResult) -> "SweepResultResponse":
        return cls(**result.to_dict())


class PolicyRowResponse(BaseModel):
    response_hours: Optional[float] = None
    resolution_hours: float
    source: Literal["policy", "default"]


class PolicyTableResponse(BaseModel):
    """Effective SLA policy table."""
    warning_threshold_percent: float
    policies: Dict[str, PolicyRowResponse]
    config_path: Optional[str] = None


class SchedulerStatusResponse(BaseModel):
    running: bool
    sweep_in_progress: bool
    sweep_interval_minutes: int
    daily_summary_time: str
    next_sweep_at: Optional[datetime] = None
    last_result: Optional[SweepResultResponse] = None
