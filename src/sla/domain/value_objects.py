"""
SLA Value Objects
==================

Immutable value objects and stateless services for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator, model_validator

from src.config import (
    Severity, SLAClassification, DEFAULT_RESOLUTION_HOURS, LIVE_STATUSES
)
from src.core import InvalidSeverityException, ValidationException

if TYPE_CHECKING:
    from src.incidents.domain.entities import Incident


DEFAULT_WARNING_THRESHOLD_PERCENT = 20.0


def parse_severity(value: Any) -> Severity:
    """Coerce a raw value into a Severity, raising InvalidSeverityException."""
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        try:
            return Severity(value.strip().upper())
        except ValueError:
            pass
    raise InvalidSeverityException(value)


# ========== Policy ==========

class SLAPolicy(BaseModel):
    """Response and resolution budgets for one severity, in hours."""
    response_hours: float = Field(gt=0, description="Hours to first response")
    resolution_hours: float = Field(gt=0, description="Hours to resolution")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_budgets(self) -> "SLAPolicy":
        """Resolution budget must exceed response budget."""
        if self.resolution_hours <= self.response_hours:
            raise ValueError("resolution_hours must be greater than response_hours")
        return self


class SLAPolicyConfig(BaseModel):
    """
    SLA policy table loaded from YAML.

    Severities without a row fall back to DEFAULT_RESOLUTION_HOURS.
    """
    policies: Dict[Severity, SLAPolicy] = Field(
        default_factory=dict,
        description="Explicit policy rows keyed by severity"
    )
    warning_threshold_percent: float = Field(
        default=DEFAULT_WARNING_THRESHOLD_PERCENT,
        gt=0,
        lt=100,
        description="Remaining-time percentage below which an incident is approaching breach"
    )

    @field_validator("policies", mode="before")
    @classmethod
    def normalise_severity_keys(cls, v: Any) -> Any:
        """Accept lower-case severity keys from hand-written YAML."""
        if isinstance(v, dict):
            return {
                (k.strip().upper() if isinstance(k, str) else k): row
                for k, row in v.items()
            }
        return v

    def get_policy(self, severity: Severity) -> Optional[SLAPolicy]:
        return self.policies.get(severity)

    def resolution_hours(self, severity: Severity) -> float:
        policy = self.get_policy(severity)
        if policy is None:
            return float(DEFAULT_RESOLUTION_HOURS[severity])
        return policy.resolution_hours

    def effective_table(self) -> Dict[str, Dict[str, Any]]:
        """Resolution budget per severity, marking which come from defaults."""
        table = {}
        for severity in Severity:
            policy = self.get_policy(severity)
            table[severity.value] = {
                "response_hours": policy.response_hours if policy else None,
                "resolution_hours": self.resolution_hours(severity),
                "source": "policy" if policy else "default",
            }
        return table


class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_config(self) -> SLAPolicyConfig:
        """Get current SLA policy configuration."""

    def get_policy(self, severity: Severity) -> Optional[SLAPolicy]:
        return self.get_config().get_policy(severity)


class StaticPolicyProvider(ISLAPolicyProvider):
    """Policy provider over a fixed configuration."""

    def __init__(self, config: Optional[SLAPolicyConfig] = None):
        self._config = config or SLAPolicyConfig()

    def get_config(self) -> SLAPolicyConfig:
        return self._config


# ========== Deadline ==========

class DeadlineCalculator:
    """Computes resolution deadlines from severity and a reference time."""

    def __init__(self, policy_provider: ISLAPolicyProvider):
        self._policy_provider = policy_provider

    def resolution_hours(self, severity: Any) -> float:
        severity = parse_severity(severity)
        return self._policy_provider.get_config().resolution_hours(severity)

    def compute_deadline(self, severity: Any, reference_time: datetime) -> datetime:
        """
        Calculate the SLA deadline.

        Args:
            severity: Incident severity
            reference_time: Start of the SLA clock (report or reopen time)

        Returns:
            reference_time plus the resolution budget

        Raises:
            InvalidSeverityException: severity is not a known tier
        """
        return reference_time + timedelta(hours=self.resolution_hours(severity))


# ========== Evaluation ==========

def format_time_remaining(seconds: float) -> str:
    """
    Render remaining time in the two coarsest units.

    Examples: "2d 3h", "5h 12m", "47m".
    """
    minutes = int(max(0, seconds) // 60)
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"


@dataclass(frozen=True)
class SLAEvaluation:
    """Result of evaluating one incident at one instant."""
    classification: SLAClassification
    remaining_seconds: float
    percentage_remaining: float
    time_remaining: str

    @property
    def is_breached(self) -> bool:
        return self.classification == SLAClassification.BREACHED

    def to_dict(self) -> dict:
        return {
            "classification": self.classification.value,
            "remaining_seconds": self.remaining_seconds,
            "percentage_remaining": self.percentage_remaining,
            "time_remaining": self.time_remaining,
        }


class SLAEvaluator:
    """
    Classifies SLA health for live incidents.

    The single source of truth for SLA health, shared by the periodic sweep
    and the on-demand incident view.
    """

    def __init__(self, policy_provider: Optional[ISLAPolicyProvider] = None):
        self._policy_provider = policy_provider

    @property
    def warning_threshold_percent(self) -> float:
        if self._policy_provider is None:
            return DEFAULT_WARNING_THRESHOLD_PERCENT
        return self._policy_provider.get_config().warning_threshold_percent

    def evaluate(self, incident: "Incident", now: datetime) -> SLAEvaluation:
        """
        Evaluate a live incident's SLA at `now`.

        Raises:
            ValidationException: incident is resolved or closed
        """
        if incident.status not in LIVE_STATUSES:
            raise ValidationException(
                f"SLA evaluation is only defined for live incidents, got {incident.status.value}",
                {"incident_id": incident.id, "status": incident.status.value}
            )

        remaining = (incident.sla_deadline - now).total_seconds()
        if remaining < 0:
            return SLAEvaluation(
                classification=SLAClassification.BREACHED,
                remaining_seconds=0.0,
                percentage_remaining=0.0,
                time_remaining="Overdue",
            )

        total = incident.sla_window_seconds
        percentage = (remaining / total) * 100 if total > 0 else 0.0

        if percentage < self.warning_threshold_percent:
            classification = SLAClassification.APPROACHING_BREACH
        else:
            classification = SLAClassification.WITHIN_SLA

        return SLAEvaluation(
            classification=classification,
            remaining_seconds=remaining,
            percentage_remaining=round(min(100.0, percentage), 2),
            time_remaining=format_time_remaining(remaining),
        )

    def describe(self, incident: "Incident", now: datetime) -> SLAEvaluation:
        """
        On-demand SLA view: live incidents are evaluated, resolved and closed
        incidents report their frozen classification.
        """
        if incident.is_live:
            return self.evaluate(incident, now)

        return SLAEvaluation(
            classification=incident.sla_status,
            remaining_seconds=0.0,
            percentage_remaining=0.0,
            time_remaining="Met" if incident.sla_met else "Closed",
        )


# ========== Metrics ==========

class SLAMetricsCalculator:
    """
    Pure functions for response/resolution metrics.

    Stateless utility class, all timing math in one place.
    """

    @staticmethod
    def response_time_minutes(incident: "Incident") -> Optional[int]:
        """Minutes from report to acknowledgement, None if unacknowledged."""
        if incident.acknowledged_at is None:
            return None
        return int((incident.acknowledged_at - incident.reported_at).total_seconds() // 60)

    @staticmethod
    def resolution_time_minutes(incident: "Incident") -> Optional[int]:
        """Minutes from report to resolution, None if unresolved."""
        if incident.resolved_at is None:
            return None
        return int((incident.resolved_at - incident.reported_at).total_seconds() // 60)

    @staticmethod
    def is_sla_met(incident: "Incident") -> Optional[bool]:
        """Whether the incident was resolved by its deadline, None if unresolved."""
        if incident.resolved_at is None:
            return None
        return incident.resolved_at <= incident.sla_deadline
