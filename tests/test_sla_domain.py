"""
SLA Domain - Unit Tests
=======================
Deadline calculator, policy table, evaluator and metrics.

Run:  pytest tests/test_sla_domain.py -v
"""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.config import IncidentStatus, Severity, SLAClassification
from src.core import InvalidSeverityException, ValidationException
from src.sla.domain.value_objects import (
    DeadlineCalculator,
    SLAEvaluator,
    SLAMetricsCalculator,
    SLAPolicy,
    SLAPolicyConfig,
    StaticPolicyProvider,
    format_time_remaining,
    parse_severity,
)

from tests.conftest import T0


# ═══════════════════════════════════════════════════════════════════════════
# DEADLINE CALCULATOR
# ═══════════════════════════════════════════════════════════════════════════
class TestDeadlineCalculator:
    @pytest.mark.parametrize("severity,hours", [
        (Severity.CRITICAL, 4), (Severity.HIGH, 8), (Severity.MEDIUM, 24), (Severity.LOW, 48),
    ])
    def test_default_budgets(self, deadlines, severity, hours):
        assert deadlines.compute_deadline(severity, T0) == T0 + timedelta(hours=hours)

    def test_deadline_after_reference(self, deadlines):
        for severity in Severity:
            assert deadlines.compute_deadline(severity, T0) > T0

    def test_string_severity_accepted(self, deadlines):
        assert deadlines.compute_deadline("critical", T0) == T0 + timedelta(hours=4)

    @pytest.mark.parametrize("bad", ["URGENT", "", None, 3])
    def test_unknown_severity_rejected(self, deadlines, bad):
        with pytest.raises(InvalidSeverityException):
            deadlines.compute_deadline(bad, T0)

    def test_policy_row_overrides_default(self):
        config = SLAPolicyConfig(policies={"HIGH": {"response_hours": 1, "resolution_hours": 6}})
        calc = DeadlineCalculator(StaticPolicyProvider(config))
        assert calc.compute_deadline(Severity.HIGH, T0) == T0 + timedelta(hours=6)
        # No row for LOW: default table applies
        assert calc.compute_deadline(Severity.LOW, T0) == T0 + timedelta(hours=48)

    def test_invalid_severity_is_validation_error(self):
        with pytest.raises(ValidationException):
            parse_severity("banana")


# ═══════════════════════════════════════════════════════════════════════════
# POLICY TABLE
# ═══════════════════════════════════════════════════════════════════════════
class TestPolicyConfig:
    def test_resolution_must_exceed_response(self):
        with pytest.raises(ValidationError):
            SLAPolicy(response_hours=4, resolution_hours=4)

    def test_lowercase_keys_normalised(self):
        config = SLAPolicyConfig(policies={"critical": {"response_hours": 0.5, "resolution_hours": 2}})
        assert config.get_policy(Severity.CRITICAL).resolution_hours == 2

    def test_unknown_severity_key_rejected(self):
        with pytest.raises(ValidationError):
            SLAPolicyConfig(policies={"SEV0": {"response_hours": 1, "resolution_hours": 2}})

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            SLAPolicyConfig(warning_threshold_percent=0)
        with pytest.raises(ValidationError):
            SLAPolicyConfig(warning_threshold_percent=100)

    def test_effective_table_marks_sources(self):
        config = SLAPolicyConfig(policies={"HIGH": {"response_hours": 1, "resolution_hours": 6}})
        table = config.effective_table()
        assert table["HIGH"] == {"response_hours": 1, "resolution_hours": 6, "source": "policy"}
        assert table["CRITICAL"] == {"response_hours": None, "resolution_hours": 4.0, "source": "default"}


# ═══════════════════════════════════════════════════════════════════════════
# TIME FORMATTING
# ═══════════════════════════════════════════════════════════════════════════
class TestFormatTimeRemaining:
    @pytest.mark.parametrize("seconds,expected", [
        (25 * 3600, "1d 1h"),
        (48 * 3600 + 59 * 60, "2d 0h"),
        (3 * 3600 + 12 * 60, "3h 12m"),
        (3600, "1h 0m"),
        (47 * 60, "47m"),
        (59, "0m"),
        (0, "0m"),
    ])
    def test_format(self, seconds, expected):
        assert format_time_remaining(seconds) == expected


# ═══════════════════════════════════════════════════════════════════════════
# EVALUATOR
# ═══════════════════════════════════════════════════════════════════════════
class TestEvaluator:
    async def test_fresh_incident_within(self, make_incident, evaluator):
        incident = await make_incident(Severity.HIGH)
        ev = evaluator.evaluate(incident, T0)
        assert ev.classification == SLAClassification.WITHIN_SLA
        assert ev.percentage_remaining == 100.0
        assert ev.time_remaining == "8h 0m"

    async def test_exactly_threshold_is_within(self, make_incident, evaluator):
        incident = await make_incident(Severity.HIGH)
        # 96 of 480 minutes left: exactly 20%
        ev = evaluator.evaluate(incident, T0 + timedelta(hours=6, minutes=24))
        assert ev.classification == SLAClassification.WITHIN_SLA

    async def test_below_threshold_approaching(self, make_incident, evaluator):
        incident = await make_incident(Severity.HIGH)
        ev = evaluator.evaluate(incident, T0 + timedelta(hours=6, minutes=30))
        assert ev.classification == SLAClassification.APPROACHING_BREACH
        assert ev.time_remaining == "1h 30m"

    async def test_at_deadline_not_breached(self, make_incident, evaluator):
        incident = await make_incident(Severity.HIGH)
        ev = evaluator.evaluate(incident, incident.sla_deadline)
        assert ev.classification == SLAClassification.APPROACHING_BREACH

    async def test_past_deadline_breached(self, make_incident, evaluator):
        incident = await make_incident(Severity.HIGH)
        ev = evaluator.evaluate(incident, incident.sla_deadline + timedelta(seconds=1))
        assert ev.classification == SLAClassification.BREACHED
        assert ev.is_breached
        assert ev.time_remaining == "Overdue"
        assert ev.remaining_seconds == 0.0

    async def test_custom_threshold(self, make_incident):
        evaluator = SLAEvaluator(StaticPolicyProvider(SLAPolicyConfig(warning_threshold_percent=50)))
        incident = await make_incident(Severity.HIGH)
        ev = evaluator.evaluate(incident, T0 + timedelta(hours=5))
        assert ev.classification == SLAClassification.APPROACHING_BREACH

    async def test_window_measured_from_clock_start(self, make_incident, evaluator):
        # Reopened 10h after report: window is the new 8h, not 18h
        restart = T0 + timedelta(hours=10)
        incident = await make_incident(
            Severity.HIGH,
            status=IncidentStatus.REOPENED,
            sla_clock_started_at=restart,
            sla_deadline=restart + timedelta(hours=8),
        )
        ev = evaluator.evaluate(incident, restart + timedelta(hours=4))
        assert ev.percentage_remaining == 50.0

    @pytest.mark.parametrize("status", [IncidentStatus.RESOLVED, IncidentStatus.CLOSED])
    async def test_resolved_incidents_rejected(self, make_incident, evaluator, status):
        incident = await make_incident(status=status, resolved_at=T0 + timedelta(hours=1))
        with pytest.raises(ValidationException):
            evaluator.evaluate(incident, T0)

    async def test_describe_returns_frozen_classification(self, make_incident, evaluator):
        incident = await make_incident(
            status=IncidentStatus.RESOLVED,
            resolved_at=T0 + timedelta(hours=1),
            sla_met=True,
        )
        ev = evaluator.describe(incident, T0 + timedelta(days=30))
        assert ev.classification == SLAClassification.WITHIN_SLA
        assert ev.time_remaining == "Met"

    async def test_describe_evaluates_live(self, make_incident, evaluator):
        incident = await make_incident()
        ev = evaluator.describe(incident, T0 + timedelta(hours=9))
        assert ev.classification == SLAClassification.BREACHED


# ═══════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════
class TestMetrics:
    async def test_unresolved_has_no_metrics(self, make_incident):
        incident = await make_incident()
        assert SLAMetricsCalculator.response_time_minutes(incident) is None
        assert SLAMetricsCalculator.resolution_time_minutes(incident) is None
        assert SLAMetricsCalculator.is_sla_met(incident) is None

    async def test_response_and_resolution_minutes(self, make_incident):
        incident = await make_incident(
            status=IncidentStatus.RESOLVED,
            acknowledged_at=T0 + timedelta(minutes=12),
            resolved_at=T0 + timedelta(hours=9),
        )
        assert SLAMetricsCalculator.response_time_minutes(incident) == 12
        assert SLAMetricsCalculator.resolution_time_minutes(incident) == 540
        assert SLAMetricsCalculator.is_sla_met(incident) is False
