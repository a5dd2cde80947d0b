"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="incident-sla-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/incidents",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Policy ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file"
    )

    # ========== SLA Monitor ==========
    sla_sweep_interval_minutes: int = Field(
        default=15,
        description="Minutes between SLA sweeps",
        ge=1
    )
    sla_sweep_timeout_seconds: float = Field(
        default=300.0,
        description="Upper bound for one sweep's store I/O",
        gt=0
    )
    sla_sweep_concurrency: int = Field(
        default=10,
        description="Max incidents processed concurrently within a sweep",
        ge=1
    )
    daily_summary_time: str = Field(
        default="09:00",
        description="Local time of day (HH:MM) for the daily summary"
    )
    scheduler_timezone: Optional[str] = Field(
        default=None,
        description="IANA timezone for scheduled jobs (defaults to host local time)"
    )

    # ========== Notifications ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Notification service endpoint receiving events"
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for notification delivery calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("daily_summary_time")
    @classmethod
    def validate_daily_summary_time(cls, v: str) -> str:
        """Accept HH:MM in 24h format."""
        try:
            hour, minute = (int(part) for part in v.split(":"))
        except ValueError:
            raise ValueError("daily_summary_time must be HH:MM")
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError("daily_summary_time must be HH:MM")
        return f"{hour:02d}:{minute:02d}"


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Severity(str, Enum):
    """Incident impact tiers driving the SLA budget."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class IncidentStatus(str, Enum):
    """Incident lifecycle statuses."""
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"


class SLAClassification(str, Enum):
    """Health of an incident relative to its deadline."""
    WITHIN_SLA = "WITHIN_SLA"
    APPROACHING_BREACH = "APPROACHING_BREACH"
    BREACHED = "BREACHED"


class NotificationKind(str, Enum):
    """Notification event kinds."""
    CREATED = "created"
    ASSIGNED = "assigned"
    STATUS_CHANGED = "status_changed"
    SLA_WARNING = "sla_warning"
    SLA_BREACH = "sla_breach"
    RESOLVED = "resolved"
    DAILY_SUMMARY = "daily_summary"


class UserRole(str, Enum):
    """Caller roles yielded by the auth gate."""
    ADMIN = "ADMIN"
    RESPONDER = "RESPONDER"
    REPORTER = "REPORTER"


# ========== Lists for validation ==========

VALID_ROLES = [r.value for r in UserRole]

# Statuses the SLA monitor sweeps
LIVE_STATUSES = [
    IncidentStatus.OPEN, IncidentStatus.ASSIGNED,
    IncidentStatus.INVESTIGATING, IncidentStatus.REOPENED
]
# Statuses in which severity may still be edited
SEVERITY_EDITABLE_STATUSES = LIVE_STATUSES
# resolved_at is set iff status is one of these
RESOLVED_STATUSES = [IncidentStatus.RESOLVED, IncidentStatus.CLOSED]

# Resolution budget in hours used when no policy row exists for a severity
DEFAULT_RESOLUTION_HOURS = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 8,
    Severity.MEDIUM: 24,
    Severity.LOW: 48,
}
