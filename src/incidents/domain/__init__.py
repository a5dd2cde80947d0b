"""
Incident Domain Layer
=====================

Entities (Incident, StatusChange, Comment, User) and the state machine that
owns the legal status graph.
"""

from src.incidents.domain.entities import (
    Incident,
    StatusChange,
    Comment,
    User,
    format_incident_number,
)
from src.incidents.domain.state_machine import (
    ALLOWED_TRANSITIONS,
    IncidentStateMachine,
    allowed_transitions,
    can_transition,
    parse_status,
    validate_transition,
)

__all__ = [
    "Incident",
    "StatusChange",
    "Comment",
    "User",
    "format_incident_number",
    "ALLOWED_TRANSITIONS",
    "IncidentStateMachine",
    "allowed_transitions",
    "can_transition",
    "parse_status",
    "validate_transition",
]
