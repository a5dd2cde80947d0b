"""
Notification Domain Entities
============================

Notification events are produced by the core and handed to an external
dispatcher. The core does not track delivery state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.config import NotificationKind


class NotificationPriority:
    """Delivery priority hints for the dispatcher."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class NotificationEvent:
    """An abstract event: who to tell, about which incident, and what."""

    kind: NotificationKind
    recipient_id: str
    incident_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def priority(self) -> str:
        return self.payload.get("priority", NotificationPriority.MEDIUM)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "recipient_id": self.recipient_id,
            "incident_id": self.incident_id,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }
