"""
Incident Domain Entities
========================

Pure Python domain entities for the incident lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.config import (
    IncidentStatus, Severity, SLAClassification, UserRole,
    LIVE_STATUSES, RESOLVED_STATUSES
)


def format_incident_number(year: int, sequence: int) -> str:
    """Human-facing incident number, e.g. INC-2026-0007."""
    return f"INC-{year}-{sequence:04d}"


@dataclass(frozen=True)
class StatusChange:
    """One entry of the append-only status log."""

    status: IncidentStatus
    actor_id: str
    note: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "actor_id": self.actor_id,
            "note": self.note,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusChange":
        return cls(
            status=IncidentStatus(data["status"]),
            actor_id=data["actor_id"],
            note=data.get("note") or "",
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class Comment:
    """A comment left on an incident."""

    id: str
    author_id: str
    text: str
    created_at: datetime
    is_internal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "text": self.text,
            "is_internal": self.is_internal,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=data["id"],
            author_id=data["author_id"],
            text=data["text"],
            is_internal=bool(data.get("is_internal", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class User:
    """Roster entry as seen by the core: identity, contact and role."""

    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool = True

    @property
    def is_active_responder(self) -> bool:
        return self.is_active and self.role == UserRole.RESPONDER


@dataclass
class Incident:
    """
    Incident entity, the central object of the lifecycle.

    `sla_clock_started_at` is `reported_at` until a reopen restarts the
    clock; `sla_deadline` is always derived from it and `severity`.
    """

    # Identity
    id: str
    incident_number: str

    # Content
    title: str
    description: str
    severity: Severity
    status: IncidentStatus

    # People
    reporter_id: str

    # Timestamps
    reported_at: datetime
    sla_deadline: datetime
    sla_clock_started_at: datetime

    responder_id: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # SLA tracking
    sla_status: SLAClassification = SLAClassification.WITHIN_SLA
    sla_breached_at: Optional[datetime] = None
    sla_met: Optional[bool] = None

    # Optional context
    affected_service: Optional[str] = None
    impacted_users: Optional[int] = None

    # Append-only history
    status_log: List[StatusChange] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    # Optimistic concurrency counter, bumped by the store on every save
    version: int = 0

    def __post_init__(self):
        """Validate incident on initialization."""
        if self.sla_deadline <= self.sla_clock_started_at:
            raise ValueError("sla_deadline must be after sla_clock_started_at")

        if self.sla_clock_started_at < self.reported_at:
            raise ValueError("sla_clock_started_at cannot be before reported_at")

        if (self.resolved_at is not None) != (self.status in RESOLVED_STATUSES):
            raise ValueError("resolved_at must be set iff status is RESOLVED or CLOSED")

        if self.resolved_at and self.resolved_at < self.reported_at:
            raise ValueError("resolved_at cannot be before reported_at")

    @property
    def is_live(self) -> bool:
        """Check if the incident is swept by the SLA monitor."""
        return self.status in LIVE_STATUSES

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    @property
    def sla_window_seconds(self) -> float:
        return (self.sla_deadline - self.sla_clock_started_at).total_seconds()

    def append_status_change(
        self,
        status: IncidentStatus,
        actor_id: str,
        note: str,
        timestamp: datetime
    ) -> StatusChange:
        entry = StatusChange(status=status, actor_id=actor_id, note=note, timestamp=timestamp)
        self.status_log.append(entry)
        self.updated_at = timestamp
        return entry

    def append_comment(self, comment: Comment) -> None:
        self.comments.append(comment)
        self.updated_at = comment.created_at
