"""
SLA Application Services
=========================

Application services for the periodic SLA jobs:
- SLAMonitorService: sweeps live incidents and persists classification changes
- DailySummaryService: aggregates counts and notifies admins

Both depend on the incident repository interface and the notification
publisher, never on concrete infrastructure.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from src.config import IncidentStatus, SLAClassification
from src.incidents.application.services import IIncidentRepository, utc_now
from src.incidents.domain.entities import Incident
from src.notifications.application.services import NotificationPublisher
from src.shared.infrastructure.locks import KeyedLock
from src.shared.infrastructure.logging import get_logger, log_latency
from src.sla.domain.entities import DailySummary, SweepResult
from src.sla.domain.value_objects import SLAEvaluation, SLAEvaluator

logger = get_logger(__name__)


class SweepOutcome:
    """What a classification change means for the sweep."""
    WARNING = "warning"
    BREACH = "breach"
    DOWNGRADE = "downgrade"


def classify_change(
    previous: SLAClassification,
    current: SLAClassification
) -> Optional[str]:
    """
    Decide what a sweep does when an incident's classification moves.

    Returns None when nothing must be written. BREACHED is sticky until a
    reopen resets it, so nothing moves an incident out of it here.
    """
    if previous == current or previous == SLAClassification.BREACHED:
        return None
    if current == SLAClassification.BREACHED:
        return SweepOutcome.BREACH
    if current == SLAClassification.APPROACHING_BREACH:
        return SweepOutcome.WARNING
    # APPROACHING -> WITHIN after a severity edit pushed the deadline out
    return SweepOutcome.DOWNGRADE


class SLAMonitorService:
    """
    Periodic SLA sweep.

    Every live incident is evaluated with the same `now`. Only a change of
    classification causes a write, so running the sweep twice at the same
    instant is a no-op the second time.
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        evaluator: SLAEvaluator,
        publisher: NotificationPublisher,
        locks: KeyedLock,
        concurrency: int = 10,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._repo = incident_repository
        self._evaluator = evaluator
        self._publisher = publisher
        self._locks = locks
        self._concurrency = max(1, concurrency)
        self._timeout = timeout_seconds
        self._clock = clock

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Evaluate all live incidents and persist classification changes.

        Per-incident failures are logged and counted, never raised. A store
        failure while listing incidents aborts the sweep.

        Raises:
            StoreUnavailableException: live incidents could not be listed
        """
        now = now or self._clock()
        result = SweepResult(started_at=now)
        committed: List[Tuple[Incident, SLAEvaluation, str]] = []

        with log_latency(logger, "sla_sweep"):
            try:
                await asyncio.wait_for(
                    self._sweep(now, result, committed), timeout=self._timeout
                )
            except asyncio.TimeoutError:
                result.timed_out = True
                logger.error(
                    "SLA sweep timed out, remaining incidents deferred to next run",
                    extra={"timeout_seconds": self._timeout, "evaluated": result.evaluated}
                )

            # Outside the timeout: every committed change gets its event
            for incident, evaluation, outcome in committed:
                await self._notify(incident, evaluation, outcome)

        result.finished_at = self._clock()
        logger.info(
            "SLA sweep completed",
            extra={
                "evaluated": result.evaluated,
                "warnings": result.warnings,
                "breaches": result.breaches,
                "downgrades": result.downgrades,
                "failed": result.failed,
                "timed_out": result.timed_out,
            }
        )
        return result

    async def _sweep(
        self,
        now: datetime,
        result: SweepResult,
        committed: List[Tuple[Incident, SLAEvaluation, str]]
    ) -> None:
        incidents = await self._repo.find_live_incidents()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def worker(incident: Incident) -> None:
            async with semaphore:
                await self._process(incident, now, result, committed)

        await asyncio.gather(*(worker(incident) for incident in incidents))

    async def _process(
        self,
        snapshot: Incident,
        now: datetime,
        result: SweepResult,
        committed: List[Tuple[Incident, SLAEvaluation, str]]
    ) -> None:
        try:
            evaluation = self._evaluator.evaluate(snapshot, now)
            result.evaluated += 1
            if classify_change(snapshot.sla_status, evaluation.classification) is None:
                return
            await self._apply(snapshot.id, now, result, committed)
        except Exception as e:
            result.failed += 1
            result.failed_incident_ids.append(snapshot.id)
            logger.error(
                "SLA evaluation failed for incident",
                extra={
                    "incident_id": snapshot.id,
                    "incident_number": snapshot.incident_number,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }
            )

    async def _apply(
        self,
        incident_id: str,
        now: datetime,
        result: SweepResult,
        committed: List[Tuple[Incident, SLAEvaluation, str]]
    ) -> None:
        """Reload under the incident lock, re-evaluate, and persist a change."""
        async with self._locks.hold(incident_id):
            incident = await self._repo.get_by_id(incident_id)
            if incident is None or not incident.is_live:
                return

            evaluation: SLAEvaluation = self._evaluator.evaluate(incident, now)
            outcome = classify_change(incident.sla_status, evaluation.classification)
            if outcome is None:
                return

            incident.sla_status = evaluation.classification
            if outcome == SweepOutcome.BREACH and incident.sla_breached_at is None:
                incident.sla_breached_at = now
            incident = await self._repo.save(incident)

            # No await between the save and recording it
            committed.append((incident, evaluation, outcome))
            if outcome == SweepOutcome.BREACH:
                result.breaches += 1
            elif outcome == SweepOutcome.WARNING:
                result.warnings += 1
            else:
                result.downgrades += 1

    async def _notify(self, incident: Incident, evaluation: SLAEvaluation, outcome: str) -> None:
        if outcome == SweepOutcome.BREACH:
            logger.warning(
                "SLA breached",
                extra={"incident_id": incident.id, "incident_number": incident.incident_number}
            )
            await self._publisher.sla_breach(incident)
        elif outcome == SweepOutcome.WARNING:
            logger.warning(
                "SLA approaching breach",
                extra={
                    "incident_id": incident.id,
                    "incident_number": incident.incident_number,
                    "time_remaining": evaluation.time_remaining,
                }
            )
            await self._publisher.sla_warning(incident, evaluation)
        else:
            logger.info(
                "SLA classification relaxed",
                extra={"incident_id": incident.id, "incident_number": incident.incident_number}
            )


class DailySummaryService:
    """Aggregates incident counts and sends the daily summary to admins."""

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        publisher: NotificationPublisher,
        timezone_name: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._repo = incident_repository
        self._publisher = publisher
        # Same zone the scheduler fires the job in; None means host local
        self._tz = ZoneInfo(timezone_name) if timezone_name else None
        self._clock = clock

    def start_of_day(self, now: datetime) -> datetime:
        """Midnight of the scheduler's local day containing `now`, in UTC."""
        local = now.astimezone(self._tz)
        midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight.astimezone(timezone.utc)

    async def build(self, now: Optional[datetime] = None) -> DailySummary:
        now = now or self._clock()
        start_of_day = self.start_of_day(now)

        live = await self._repo.find_live_incidents()
        summary = DailySummary(generated_at=now)
        summary.resolved_today = await self._repo.count_resolved_between(start_of_day, now)

        for incident in live:
            if incident.status in (IncidentStatus.OPEN, IncidentStatus.REOPENED):
                summary.open += 1
            elif incident.status == IncidentStatus.ASSIGNED:
                summary.assigned += 1
            elif incident.status == IncidentStatus.INVESTIGATING:
                summary.in_progress += 1

            if incident.sla_status == SLAClassification.BREACHED:
                summary.breached += 1
            elif incident.sla_status == SLAClassification.APPROACHING_BREACH:
                summary.approaching_breach += 1

            severity = incident.severity.value
            summary.by_severity[severity] = summary.by_severity.get(severity, 0) + 1

        return summary

    async def run(self, now: Optional[datetime] = None) -> DailySummary:
        summary = await self.build(now)
        delivered = await self._publisher.daily_summary(summary)
        logger.info(
            "Daily summary sent",
            extra={"recipients": delivered, "open": summary.open, "breached": summary.breached}
        )
        return summary
