"""
Incident State Machine
======================

Owns the legal status graph and applies transitions to Incident entities.

The adjacency map below is the only transition table in the codebase;
every status change is validated by `validate_transition`.

    OPEN          -> ASSIGNED, INVESTIGATING
    ASSIGNED      -> INVESTIGATING, OPEN
    INVESTIGATING -> RESOLVED, ASSIGNED
    RESOLVED      -> CLOSED, REOPENED
    CLOSED        -> REOPENED
    REOPENED      -> INVESTIGATING, ASSIGNED

All methods validate before mutating, so a raised exception leaves the
incident untouched. Persistence and notifications are the caller's job.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from src.config import (
    IncidentStatus, Severity, SLAClassification, SEVERITY_EDITABLE_STATUSES
)
from src.core import (
    AlreadyAssignedException,
    InvalidResponderException,
    InvalidTransitionException,
    ValidationException,
)
from src.incidents.domain.entities import Incident, StatusChange, User
from src.sla.domain.value_objects import DeadlineCalculator, parse_severity


ALLOWED_TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    IncidentStatus.OPEN: frozenset({IncidentStatus.ASSIGNED, IncidentStatus.INVESTIGATING}),
    IncidentStatus.ASSIGNED: frozenset({IncidentStatus.INVESTIGATING, IncidentStatus.OPEN}),
    IncidentStatus.INVESTIGATING: frozenset({IncidentStatus.RESOLVED, IncidentStatus.ASSIGNED}),
    IncidentStatus.RESOLVED: frozenset({IncidentStatus.CLOSED, IncidentStatus.REOPENED}),
    IncidentStatus.CLOSED: frozenset({IncidentStatus.REOPENED}),
    IncidentStatus.REOPENED: frozenset({IncidentStatus.INVESTIGATING, IncidentStatus.ASSIGNED}),
}


def parse_status(value: Any) -> IncidentStatus:
    """Coerce a raw value into an IncidentStatus."""
    if isinstance(value, IncidentStatus):
        return value
    if isinstance(value, str):
        try:
            return IncidentStatus(value.strip().upper())
        except ValueError:
            pass
    raise ValidationException(f"Invalid status: {value!r}", {"status": str(value)})


def allowed_transitions(status: IncidentStatus) -> FrozenSet[IncidentStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def can_transition(current: IncidentStatus, target: IncidentStatus) -> bool:
    return target in allowed_transitions(current)


def validate_transition(current: IncidentStatus, target: IncidentStatus) -> None:
    """Raise InvalidTransitionException unless current -> target is legal."""
    if not can_transition(current, target):
        allowed = sorted(s.value for s in allowed_transitions(current))
        raise InvalidTransitionException(
            current, target, f"allowed: {', '.join(allowed) if allowed else 'none'}"
        )


class IncidentStateMachine:
    """
    Applies lifecycle operations to an in-memory Incident.

    Deadline recomputation goes through the injected DeadlineCalculator so the
    policy table stays the single source of SLA budgets.
    """

    def __init__(self, deadline_calculator: DeadlineCalculator):
        self._deadlines = deadline_calculator

    def assign(
        self,
        incident: Incident,
        responder: Optional[User],
        responder_id: str,
        actor_id: str,
        now: datetime
    ) -> StatusChange:
        """
        Assign a responder to an OPEN incident and move it to ASSIGNED.

        Raises:
            AlreadyAssignedException: a responder is already set
            InvalidTransitionException: incident is not OPEN
            InvalidResponderException: user missing, inactive, or not a responder
        """
        if incident.responder_id:
            raise AlreadyAssignedException(incident.id, incident.responder_id)
        if incident.status != IncidentStatus.OPEN:
            raise InvalidTransitionException(
                incident.status, IncidentStatus.ASSIGNED, "assignment requires an OPEN incident"
            )
        validate_transition(incident.status, IncidentStatus.ASSIGNED)
        if responder is None:
            raise InvalidResponderException(responder_id, "user not found")
        if not responder.is_active:
            raise InvalidResponderException(responder_id, "user is inactive")
        if not responder.is_active_responder:
            raise InvalidResponderException(responder_id, f"role {responder.role.value} cannot respond")

        incident.responder_id = responder.id
        incident.status = IncidentStatus.ASSIGNED
        return incident.append_status_change(
            IncidentStatus.ASSIGNED, actor_id, f"Assigned to {responder.name}", now
        )

    def transition(
        self,
        incident: Incident,
        target: IncidentStatus,
        actor_id: str,
        now: datetime,
        notes: Optional[str] = None
    ) -> StatusChange:
        """
        Move an incident to `target`, applying the side effects of entering it.

        Raises:
            InvalidTransitionException: target not reachable from current status
        """
        current = incident.status
        validate_transition(current, target)
        if target == IncidentStatus.ASSIGNED and not incident.responder_id:
            raise InvalidTransitionException(current, target, "no responder is set")

        if target == IncidentStatus.OPEN:
            # Back to the unassigned queue
            incident.responder_id = None
        elif target == IncidentStatus.INVESTIGATING:
            if incident.acknowledged_at is None:
                incident.acknowledged_at = now
        elif target == IncidentStatus.RESOLVED:
            incident.resolved_at = now
            incident.sla_met = now <= incident.sla_deadline
        elif target == IncidentStatus.CLOSED:
            incident.closed_at = now
        elif target == IncidentStatus.REOPENED:
            self._restart_sla_clock(incident, now)

        incident.status = target
        note = notes or f"Status changed from {current.value} to {target.value}"
        return incident.append_status_change(target, actor_id, note, now)

    def change_severity(
        self,
        incident: Incident,
        new_severity: Any,
        actor_id: str,
        now: datetime
    ) -> Optional[StatusChange]:
        """
        Change severity and recompute the deadline from the SLA clock start.

        The clock start is `reported_at` unless a reopen restarted it, so a
        severity edit moves the deadline retroactively rather than from `now`.

        Returns:
            The log entry, or None when the severity is unchanged
        """
        severity = parse_severity(new_severity)
        if incident.status not in SEVERITY_EDITABLE_STATUSES:
            raise InvalidTransitionException(
                incident.status, incident.status,
                "severity can only change while the incident is open"
            )
        if severity == incident.severity:
            return None

        previous = incident.severity
        incident.sla_deadline = self._deadlines.compute_deadline(severity, incident.sla_clock_started_at)
        incident.severity = severity
        return incident.append_status_change(
            incident.status,
            actor_id,
            f"Severity changed from {previous.value} to {severity.value}",
            now
        )

    def _restart_sla_clock(self, incident: Incident, now: datetime) -> None:
        incident.resolved_at = None
        incident.closed_at = None
        incident.sla_met = None
        incident.sla_breached_at = None
        incident.sla_status = SLAClassification.WITHIN_SLA
        incident.sla_clock_started_at = now
        incident.sla_deadline = self._deadlines.compute_deadline(incident.severity, now)

    def new_deadline(self, severity: Severity, reference_time: datetime) -> datetime:
        return self._deadlines.compute_deadline(severity, reference_time)
