"""
Shared fixtures: in-memory store, roster, dispatcher and a fixed clock.
"""
import copy
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from src.config import IncidentStatus, Severity, UserRole, LIVE_STATUSES
from src.core import (
    ConcurrentModificationException,
    NotificationDeliveryException,
    ResourceNotFoundException,
    StoreUnavailableException,
)
from src.incidents.application.services import (
    IIncidentRepository,
    IUserDirectory,
    IncidentService,
)
from src.incidents.domain.entities import Incident, StatusChange, User, format_incident_number
from src.incidents.domain.state_machine import IncidentStateMachine
from src.notifications.application.services import INotificationDispatcher, NotificationPublisher
from src.notifications.domain.entities import NotificationEvent
from src.shared.infrastructure.locks import KeyedLock
from src.sla.application.services import DailySummaryService, SLAMonitorService
from src.sla.domain.value_objects import DeadlineCalculator, SLAEvaluator, StaticPolicyProvider

T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

ADMIN_1 = User("admin-1", "Ada Admin", "ada@example.com", UserRole.ADMIN)
ADMIN_2 = User("admin-2", "Abe Admin", "abe@example.com", UserRole.ADMIN)
RETIRED_ADMIN = User("admin-3", "Old Admin", "old@example.com", UserRole.ADMIN, is_active=False)
RESPONDER = User("resp-1", "Rita Responder", "rita@example.com", UserRole.RESPONDER)
RESPONDER_2 = User("resp-2", "Rob Responder", "rob@example.com", UserRole.RESPONDER)
INACTIVE_RESPONDER = User("resp-9", "Ina Inactive", "ina@example.com", UserRole.RESPONDER, is_active=False)
REPORTER = User("user-1", "Uma User", "uma@example.com", UserRole.REPORTER)


# ── Fakes ────────────────────────────────────────────────────────────────
class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryIncidentRepository(IIncidentRepository):
    """Copies on the way in and out, like a real store."""

    def __init__(self):
        self.incidents: Dict[str, Incident] = {}
        self.sequences: Dict[int, int] = {}
        self.save_count = 0
        self.failing_ids = set()
        self.unavailable = False

    def _check(self, incident_id: Optional[str] = None):
        if self.unavailable or (incident_id is not None and incident_id in self.failing_ids):
            raise StoreUnavailableException("store down")

    async def next_sequence(self, year: int) -> int:
        self._check()
        self.sequences[year] = self.sequences.get(year, 0) + 1
        return self.sequences[year]

    async def create(self, incident: Incident) -> Incident:
        self._check()
        self.incidents[incident.id] = copy.deepcopy(incident)
        return incident

    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        self._check(incident_id)
        stored = self.incidents.get(incident_id)
        return copy.deepcopy(stored) if stored else None

    async def save(self, incident: Incident) -> Incident:
        self._check(incident.id)
        stored = self.incidents.get(incident.id)
        if stored is None:
            raise ResourceNotFoundException("Incident", incident.id)
        if stored.version != incident.version:
            raise ConcurrentModificationException(incident.id, incident.version)
        incident.version += 1
        self.incidents[incident.id] = copy.deepcopy(incident)
        self.save_count += 1
        return incident

    async def find_live_incidents(self) -> List[Incident]:
        self._check()
        live = [i for i in self.incidents.values() if i.status in LIVE_STATUSES]
        return [copy.deepcopy(i) for i in sorted(live, key=lambda i: i.sla_deadline)]

    async def count_resolved_between(self, start: datetime, end: datetime) -> int:
        self._check()
        return sum(
            1 for i in self.incidents.values()
            if i.resolved_at is not None and start <= i.resolved_at < end
        )


class FakeUserDirectory(IUserDirectory):
    def __init__(self, users: List[User]):
        self.users = {u.id: u for u in users}
        self.unavailable = False

    async def get_user(self, user_id: str) -> Optional[User]:
        if self.unavailable:
            raise StoreUnavailableException("roster down")
        return self.users.get(user_id)

    async def list_active_admins(self) -> List[User]:
        if self.unavailable:
            raise StoreUnavailableException("roster down")
        return [u for u in self.users.values() if u.role == UserRole.ADMIN and u.is_active]


class RecordingDispatcher(INotificationDispatcher):
    def __init__(self):
        self.events: List[NotificationEvent] = []
        self.fail = False

    async def emit(self, event: NotificationEvent) -> None:
        if self.fail:
            raise NotificationDeliveryException("webhook down")
        self.events.append(event)

    def of_kind(self, kind) -> List[NotificationEvent]:
        return [e for e in self.events if e.kind == kind]

    def recipients(self, kind) -> List[str]:
        return [e.recipient_id for e in self.of_kind(kind)]


# ── Fixtures ─────────────────────────────────────────────────────────────
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo():
    return InMemoryIncidentRepository()


@pytest.fixture
def users():
    return FakeUserDirectory([
        ADMIN_1, ADMIN_2, RETIRED_ADMIN, RESPONDER, RESPONDER_2, INACTIVE_RESPONDER, REPORTER,
    ])


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def policy_provider():
    return StaticPolicyProvider()


@pytest.fixture
def deadlines(policy_provider):
    return DeadlineCalculator(policy_provider)


@pytest.fixture
def evaluator(policy_provider):
    return SLAEvaluator(policy_provider)


@pytest.fixture
def state_machine(deadlines):
    return IncidentStateMachine(deadlines)


@pytest.fixture
def publisher(dispatcher, users):
    return NotificationPublisher(dispatcher, users)


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def service(repo, users, state_machine, publisher, locks, clock):
    return IncidentService(repo, users, state_machine, publisher, locks, clock=clock)


@pytest.fixture
def monitor(repo, evaluator, publisher, locks, clock):
    return SLAMonitorService(repo, evaluator, publisher, locks, concurrency=4, clock=clock)


@pytest.fixture
def daily_summary(repo, publisher, clock):
    return DailySummaryService(repo, publisher, timezone_name="UTC", clock=clock)


@pytest.fixture
def make_incident(repo, deadlines):
    """Insert an incident directly into the store."""
    counter = {"n": 0}

    async def _make(
        severity: Severity = Severity.HIGH,
        status: IncidentStatus = IncidentStatus.OPEN,
        reported_at: datetime = T0,
        responder_id: Optional[str] = None,
        **overrides,
    ) -> Incident:
        counter["n"] += 1
        fields = dict(
            id=f"inc-{counter['n']}",
            incident_number=format_incident_number(reported_at.year, counter["n"]),
            title=f"Incident {counter['n']}",
            description="",
            severity=severity,
            status=status,
            reporter_id=REPORTER.id,
            reported_at=reported_at,
            sla_deadline=deadlines.compute_deadline(severity, reported_at),
            sla_clock_started_at=reported_at,
            responder_id=responder_id,
            status_log=[StatusChange(IncidentStatus.OPEN, REPORTER.id, "Incident reported", reported_at)],
        )
        fields.update(overrides)
        incident = Incident(**fields)
        await repo.create(incident)
        return incident

    return _make
