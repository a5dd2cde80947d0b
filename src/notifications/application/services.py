"""
Notification Application Services
=================================

Shapes notification events for lifecycle and SLA changes and hands them to
the dispatcher.

Delivery is fire-and-forget: a failure is logged and swallowed so incident
state never depends on a notification going out.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from src.config import IncidentStatus, NotificationKind
from src.core import ApplicationException
from src.incidents.application.services import IUserDirectory
from src.incidents.domain.entities import Incident, User
from src.notifications.domain.entities import NotificationEvent, NotificationPriority
from src.shared.infrastructure.logging import get_logger
from src.sla.domain.entities import DailySummary
from src.sla.domain.value_objects import SLAEvaluation

logger = get_logger(__name__)


class INotificationDispatcher(ABC):
    """Interface for the external delivery channel (in-app + email)."""

    @abstractmethod
    async def emit(self, event: NotificationEvent) -> None:
        """Deliver one event. Raises NotificationDeliveryException on failure."""

    async def close(self) -> None:
        """Release transport resources."""


class NotificationPublisher:
    """
    Builds notification events and dispatches them.

    The admin roster comes from the injected user directory, never from
    ambient state, so tests can pin it.
    """

    def __init__(self, dispatcher: INotificationDispatcher, user_directory: IUserDirectory):
        self._dispatcher = dispatcher
        self._users = user_directory

    # ========== Lifecycle events ==========

    async def incident_created(self, incident: Incident) -> int:
        admins = await self._admins()
        payload = self._incident_payload(
            incident,
            title="New Incident Reported",
            message=(
                f"Incident {incident.incident_number} has been created with "
                f"{incident.severity.value} severity: {incident.title}"
            ),
        )
        return await self.publish(
            NotificationEvent(NotificationKind.CREATED, admin.id, incident.id, payload)
            for admin in admins
        )

    async def incident_assigned(self, incident: Incident) -> int:
        if not incident.responder_id:
            return 0
        payload = self._incident_payload(
            incident,
            title="Incident Assigned to You",
            message=(
                f"You have been assigned to incident {incident.incident_number}: {incident.title}. "
                f"SLA deadline: {incident.sla_deadline.isoformat()}"
            ),
        )
        return await self.publish([
            NotificationEvent(NotificationKind.ASSIGNED, incident.responder_id, incident.id, payload)
        ])

    async def status_changed(
        self,
        incident: Incident,
        old_status: IncidentStatus,
        new_status: IncidentStatus
    ) -> int:
        payload = self._incident_payload(
            incident,
            title="Incident Status Updated",
            message=(
                f"Incident {incident.incident_number} status changed from "
                f"{old_status.value} to {new_status.value}"
            ),
            previous_status=old_status.value,
        )
        return await self.publish([
            NotificationEvent(NotificationKind.STATUS_CHANGED, incident.reporter_id, incident.id, payload)
        ])

    async def incident_resolved(self, incident: Incident) -> int:
        payload = self._incident_payload(
            incident,
            title="Your Incident Has Been Resolved",
            message=f"Incident {incident.incident_number} has been resolved.",
            resolved_at=incident.resolved_at.isoformat() if incident.resolved_at else None,
            sla_met=incident.sla_met,
        )
        return await self.publish([
            NotificationEvent(NotificationKind.RESOLVED, incident.reporter_id, incident.id, payload)
        ])

    # ========== SLA events ==========

    async def sla_warning(self, incident: Incident, evaluation: SLAEvaluation) -> int:
        if not incident.responder_id:
            logger.info(
                "SLA warning has no recipient, incident unassigned",
                extra={"incident_number": incident.incident_number}
            )
            return 0
        payload = self._incident_payload(
            incident,
            title="SLA Warning - Action Needed",
            message=(
                f"Incident {incident.incident_number} is approaching its SLA deadline. "
                f"Time remaining: {evaluation.time_remaining}. Please prioritize this incident."
            ),
            priority=NotificationPriority.HIGH,
            time_remaining=evaluation.time_remaining,
            percentage_remaining=evaluation.percentage_remaining,
        )
        return await self.publish([
            NotificationEvent(NotificationKind.SLA_WARNING, incident.responder_id, incident.id, payload)
        ])

    async def sla_breach(self, incident: Incident) -> int:
        admins = await self._admins()
        recipients = _unique([incident.responder_id] + [admin.id for admin in admins])
        payload = self._incident_payload(
            incident,
            title="SLA BREACH ALERT",
            message=(
                f"Incident {incident.incident_number} has breached its SLA deadline. "
                "Immediate action required!"
            ),
            priority=NotificationPriority.HIGH,
            breached_at=incident.sla_breached_at.isoformat() if incident.sla_breached_at else None,
        )
        return await self.publish(
            NotificationEvent(NotificationKind.SLA_BREACH, recipient, incident.id, payload)
            for recipient in recipients
        )

    async def daily_summary(self, summary: DailySummary) -> int:
        admins = await self._admins()
        payload = {
            "title": "Daily Incident Summary",
            "message": (
                f"Open: {summary.open}, in progress: {summary.in_progress}, "
                f"resolved today: {summary.resolved_today}, SLA breaches: {summary.breached}"
            ),
            "priority": NotificationPriority.MEDIUM,
            "summary": summary.to_dict(),
        }
        return await self.publish(
            NotificationEvent(NotificationKind.DAILY_SUMMARY, admin.id, None, payload)
            for admin in admins
        )

    # ========== Dispatch ==========

    async def publish(self, events: Iterable[NotificationEvent]) -> int:
        """Emit each event, logging and swallowing failures. Returns delivered count."""
        delivered = 0
        for event in events:
            try:
                await self._dispatcher.emit(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "Notification delivery failed",
                    extra={
                        "kind": event.kind.value,
                        "recipient_id": event.recipient_id,
                        "incident_id": event.incident_id,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }
                )
        return delivered

    async def _admins(self) -> List[User]:
        try:
            return await self._users.list_active_admins()
        except ApplicationException as e:
            logger.error("Admin roster lookup failed", extra={"error": str(e)})
            return []

    @staticmethod
    def _incident_payload(
        incident: Incident,
        title: str,
        message: str,
        priority: str = NotificationPriority.MEDIUM,
        **extra
    ) -> dict:
        payload = {
            "title": title,
            "message": message,
            "priority": priority,
            "incident_number": incident.incident_number,
            "incident_title": incident.title,
            "severity": incident.severity.value,
            "status": incident.status.value,
            "sla_deadline": incident.sla_deadline.isoformat(),
        }
        payload.update(extra)
        return payload


def _unique(ids: Iterable[Optional[str]]) -> List[str]:
    seen = []
    for item in ids:
        if item and item not in seen:
            seen.append(item)
    return seen
