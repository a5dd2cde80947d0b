"""
SLA Domain Entities
====================

Results produced by the SLA monitor jobs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class SweepResult:
    """
    Outcome of one SLA sweep.

    `skipped` is True when the trigger fired while another sweep was running.
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    evaluated: int = 0
    warnings: int = 0
    breaches: int = 0
    downgrades: int = 0
    failed: int = 0
    failed_incident_ids: List[str] = field(default_factory=list)
    skipped: bool = False
    timed_out: bool = False

    @property
    def writes(self) -> int:
        return self.warnings + self.breaches + self.downgrades

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "evaluated": self.evaluated,
            "warnings": self.warnings,
            "breaches": self.breaches,
            "downgrades": self.downgrades,
            "failed": self.failed,
            "failed_incident_ids": list(self.failed_incident_ids),
            "skipped": self.skipped,
            "timed_out": self.timed_out,
        }


@dataclass
class DailySummary:
    """Counts aggregated for the daily summary notification."""

    generated_at: datetime
    open: int = 0
    assigned: int = 0
    in_progress: int = 0
    resolved_today: int = 0
    breached: int = 0
    approaching_breach: int = 0
    by_severity: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at.isoformat(),
            "open": self.open,
            "assigned": self.assigned,
            "in_progress": self.in_progress,
            "resolved_today": self.resolved_today,
            "breached": self.breached,
            "approaching_breach": self.approaching_breach,
            "by_severity": dict(self.by_severity),
        }
