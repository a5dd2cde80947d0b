"""
Incident Application Services
=============================

Application services orchestrate the incident lifecycle: they load the
incident under its per-incident lock, apply the state machine, persist with
a single save, and only then publish notifications.

Following SOLID principles:
- Single Responsibility: the state machine decides, the service coordinates
- Dependency Inversion: depend on repository and roster interfaces
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional, TYPE_CHECKING
from uuid import uuid4

from src.config import IncidentStatus
from src.core import ResourceNotFoundException, ValidationException
from src.incidents.domain.entities import Comment, Incident, User, format_incident_number
from src.incidents.domain.state_machine import IncidentStateMachine, parse_status
from src.shared.infrastructure.locks import KeyedLock
from src.shared.infrastructure.logging import get_logger
from src.sla.domain.value_objects import parse_severity

if TYPE_CHECKING:
    from src.notifications.application.services import NotificationPublisher

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIncidentRepository(ABC):
    """Interface for incident persistence."""

    @abstractmethod
    async def next_sequence(self, year: int) -> int:
        """Allocate the next incident sequence number for `year`, starting at 1."""

    @abstractmethod
    async def create(self, incident: Incident) -> Incident:
        """Insert a new incident."""

    @abstractmethod
    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        """Get incident by ID, None if unknown."""

    @abstractmethod
    async def save(self, incident: Incident) -> Incident:
        """
        Persist an existing incident.

        Raises:
            ConcurrentModificationException: stored version differs from incident.version
        """

    @abstractmethod
    async def find_live_incidents(self) -> List[Incident]:
        """Incidents in OPEN, ASSIGNED, INVESTIGATING or REOPENED."""

    @abstractmethod
    async def count_resolved_between(self, start: datetime, end: datetime) -> int:
        """Count incidents with resolved_at in [start, end)."""


class IUserDirectory(ABC):
    """Interface for the user roster."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID, None if unknown."""

    @abstractmethod
    async def list_active_admins(self) -> List[User]:
        """All active users with the ADMIN role."""


# ========== Application Services ==========

class IncidentService:
    """
    Service for the inbound incident operations.

    Every mutation follows lock -> load -> mutate -> save -> notify. The
    lock is shared with the SLA monitor so a sweep write never interleaves
    with a lifecycle change on the same incident.
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        user_directory: IUserDirectory,
        state_machine: IncidentStateMachine,
        publisher: "NotificationPublisher",
        locks: KeyedLock,
        clock: Callable[[], datetime] = utc_now
    ):
        self._repo = incident_repository
        self._users = user_directory
        self._state_machine = state_machine
        self._publisher = publisher
        self._locks = locks
        self._clock = clock

    async def create_incident(
        self,
        title: str,
        description: str,
        severity,
        reporter_id: str,
        affected_service: Optional[str] = None,
        impacted_users: Optional[int] = None
    ) -> Incident:
        """
        Report a new incident.

        Raises:
            InvalidSeverityException: unknown severity
            ValidationException: empty title or reporter
        """
        severity = parse_severity(severity)
        if not title or not title.strip():
            raise ValidationException("Incident title is required", {"field": "title"})
        if not reporter_id:
            raise ValidationException("Reporter is required", {"field": "reporter_id"})

        now = self._clock()
        sequence = await self._repo.next_sequence(now.year)
        incident = Incident(
            id=str(uuid4()),
            incident_number=format_incident_number(now.year, sequence),
            title=title.strip(),
            description=description or "",
            severity=severity,
            status=IncidentStatus.OPEN,
            reporter_id=reporter_id,
            reported_at=now,
            sla_deadline=self._state_machine.new_deadline(severity, now),
            sla_clock_started_at=now,
            affected_service=affected_service,
            impacted_users=impacted_users,
        )
        incident.append_status_change(IncidentStatus.OPEN, reporter_id, "Incident reported", now)

        incident = await self._repo.create(incident)
        logger.info(
            "Incident created",
            extra={
                "incident_id": incident.id,
                "incident_number": incident.incident_number,
                "severity": incident.severity.value,
                "sla_deadline": incident.sla_deadline.isoformat(),
            }
        )

        await self._publisher.incident_created(incident)
        return incident

    async def get_incident(self, incident_id: str) -> Incident:
        incident = await self._repo.get_by_id(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)
        return incident

    async def assign_incident(self, incident_id: str, responder_id: str, actor_id: str) -> Incident:
        """
        Assign a responder to an OPEN incident.

        Raises:
            ResourceNotFoundException: unknown incident
            AlreadyAssignedException: responder already set
            InvalidTransitionException: incident is not OPEN
            InvalidResponderException: responder missing, inactive or wrong role
        """
        async with self._locks.hold(incident_id):
            incident = await self.get_incident(incident_id)
            responder = await self._users.get_user(responder_id) if responder_id else None
            self._state_machine.assign(incident, responder, responder_id, actor_id, self._clock())
            incident = await self._repo.save(incident)

        logger.info(
            "Incident assigned",
            extra={
                "incident_id": incident.id,
                "incident_number": incident.incident_number,
                "responder_id": responder_id,
                "actor_id": actor_id,
            }
        )
        await self._publisher.incident_assigned(incident)
        return incident

    async def update_incident_status(
        self,
        incident_id: str,
        new_status,
        actor_id: str,
        notes: Optional[str] = None
    ) -> Incident:
        """
        Move an incident along the status graph.

        Raises:
            ResourceNotFoundException: unknown incident
            ValidationException: unknown status value
            InvalidTransitionException: move not in the status graph
        """
        target = parse_status(new_status)

        async with self._locks.hold(incident_id):
            incident = await self.get_incident(incident_id)
            previous = incident.status
            self._state_machine.transition(incident, target, actor_id, self._clock(), notes)
            incident = await self._repo.save(incident)

        logger.info(
            "Incident status changed",
            extra={
                "incident_id": incident.id,
                "incident_number": incident.incident_number,
                "from_status": previous.value,
                "to_status": target.value,
                "actor_id": actor_id,
            }
        )

        if target == IncidentStatus.RESOLVED:
            await self._publisher.incident_resolved(incident)
        else:
            await self._publisher.status_changed(incident, previous, target)
        return incident

    async def update_incident_severity(self, incident_id: str, new_severity, actor_id: str) -> Incident:
        """
        Change severity and recompute the SLA deadline.

        Raises:
            ResourceNotFoundException: unknown incident
            InvalidSeverityException: unknown severity
            InvalidTransitionException: incident is resolved or closed
        """
        async with self._locks.hold(incident_id):
            incident = await self.get_incident(incident_id)
            previous = incident.severity
            entry = self._state_machine.change_severity(incident, new_severity, actor_id, self._clock())
            if entry is None:
                return incident
            incident = await self._repo.save(incident)

        logger.info(
            "Incident severity changed",
            extra={
                "incident_id": incident.id,
                "incident_number": incident.incident_number,
                "from_severity": previous.value,
                "to_severity": incident.severity.value,
                "sla_deadline": incident.sla_deadline.isoformat(),
            }
        )
        return incident

    async def add_comment(
        self,
        incident_id: str,
        author_id: str,
        text: str,
        is_internal: bool = False
    ) -> Incident:
        if not text or not text.strip():
            raise ValidationException("Comment text is required", {"field": "text"})

        async with self._locks.hold(incident_id):
            incident = await self.get_incident(incident_id)
            incident.append_comment(Comment(
                id=str(uuid4()),
                author_id=author_id,
                text=text.strip(),
                created_at=self._clock(),
                is_internal=is_internal,
            ))
            incident = await self._repo.save(incident)

        logger.debug("Comment added", extra={"incident_id": incident.id, "author_id": author_id})
        return incident
