"""
Incident Infrastructure Models
==============================

SQLAlchemy ORM models for the incidents module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.config import IncidentStatus, SLAClassification, UserRole
from src.infrastructure.database import Base


class IncidentModel(Base):
    """
    Database model for the Incident entity.

    Maps to the 'incidents' table. Status log and comments are stored as
    JSON arrays next to the row they belong to.
    """
    __tablename__ = "incidents"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Business identifier
    incident_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True, default=IncidentStatus.OPEN.value)

    # People
    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    responder_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Timestamps
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # SLA tracking
    sla_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sla_clock_started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sla_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SLAClassification.WITHIN_SLA.value
    )
    sla_breached_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_met: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Optional context
    affected_service: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    impacted_users: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # History
    status_log: Mapped[List[Any]] = mapped_column(JSON, nullable=False, default=list)
    comments: Mapped[List[Any]] = mapped_column(JSON, nullable=False, default=list)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class IncidentSequenceModel(Base):
    """Per-year counter behind INC-<year>-<seq> numbers."""
    __tablename__ = "incident_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserModel(Base):
    """
    Database model for the user roster.

    Maps to the 'users' table.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.REPORTER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
