"""
Incident Application DTOs
=========================

Pydantic models for the incident API layer.

Severity and status arrive as plain strings and are parsed by the service,
so an unknown severity surfaces as InvalidSeverityException (422) rather
than a generic request validation error.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.incidents.domain.entities import Incident


# ========== Request DTOs ==========

class IncidentCreateRequest(BaseModel):
    """Request model for reporting an incident."""
    title: str = Field(..., min_length=1, max_length=500, description="Short summary")
    description: str = Field(default="", description="Free-form details")
    severity: str = Field(..., description="LOW, MEDIUM, HIGH or CRITICAL")
    affected_service: Optional[str] = Field(None, max_length=255)
    impacted_users: Optional[int] = Field(None, ge=0)


class AssignRequest(BaseModel):
    responder_id: str = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="Target status")
    notes: Optional[str] = Field(None, max_length=2000)


class SeverityUpdateRequest(BaseModel):
    severity: str


class CommentCreateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


# ========== Response DTOs ==========

class StatusChangeResponse(BaseModel):
    status: str
    actor_id: str
    note: str
    timestamp: datetime


class CommentResponse(BaseModel):
    id: str
    author_id: str
    text: str
    is_internal: bool
    created_at: datetime


class IncidentResponse(BaseModel):
    """Full incident representation."""
    id: str
    incident_number: str
    title: str
    description: str
    severity: str
    status: str
    reporter_id: str
    responder_id: Optional[str] = None
    reported_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sla_deadline: datetime
    sla_clock_started_at: datetime
    sla_status: str
    sla_breached_at: Optional[datetime] = None
    sla_met: Optional[bool] = None
    affected_service: Optional[str] = None
    impacted_users: Optional[int] = None
    status_log: List[StatusChangeResponse] = Field(default_factory=list)
    comments: List[CommentResponse] = Field(default_factory=list)
    version: int

    @classmethod
    def from_entity(cls, incident: Incident) -> "IncidentResponse":
        return cls(
            id=incident.id,
            incident_number=incident.incident_number,
            title=incident.title,
            description=incident.description,
            severity=incident.severity.value,
            status=incident.status.value,
            reporter_id=incident.reporter_id,
            responder_id=incident.responder_id,
            reported_at=incident.reported_at,
            acknowledged_at=incident.acknowledged_at,
            resolved_at=incident.resolved_at,
            closed_at=incident.closed_at,
            updated_at=incident.updated_at,
            sla_deadline=incident.sla_deadline,
            sla_clock_started_at=incident.sla_clock_started_at,
            sla_status=incident.sla_status.value,
            sla_breached_at=incident.sla_breached_at,
            sla_met=incident.sla_met,
            affected_service=incident.affected_service,
            impacted_users=incident.impacted_users,
            status_log=[StatusChangeResponse(**entry.to_dict()) for entry in incident.status_log],
            comments=[CommentResponse(**comment.to_dict()) for comment in incident.comments],
            version=incident.version,
        )
