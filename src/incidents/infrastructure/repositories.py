"""
Incident Infrastructure Repositories
====================================

Concrete implementations of the incident repository and user directory
using async SQLAlchemy.

Each operation runs in its own short transaction taken from the session
maker. Any SQLAlchemyError surfaces as StoreUnavailableException.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import (
    IncidentStatus, Severity, SLAClassification, UserRole, LIVE_STATUSES
)
from src.core import (
    ConcurrentModificationException,
    ResourceNotFoundException,
    StoreUnavailableException,
)
from src.incidents.application.services import IIncidentRepository, IUserDirectory
from src.incidents.domain.entities import Comment, Incident, StatusChange, User
from src.incidents.infrastructure.models import (
    IncidentModel, IncidentSequenceModel, UserModel
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are UTC; some drivers hand them back naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _TransactionalRepository:
    """Shared session handling for the SQLAlchemy repositories."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _transaction(
        self, passthrough: Tuple[Type[SQLAlchemyError], ...] = ()
    ) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except passthrough:
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Store operation failed",
                extra={"repository": type(self).__name__, "error": str(e)}
            )
            raise StoreUnavailableException(
                "Incident store is unavailable",
                {"error_type": type(e).__name__}
            ) from e


class SQLAlchemyIncidentRepository(_TransactionalRepository, IIncidentRepository):
    """
    SQLAlchemy implementation of the incident repository.

    `save` is a compare-and-set on the version column: the UPDATE only
    matches the row the caller loaded, and bumps the version.
    """

    async def next_sequence(self, year: int) -> int:
        try:
            async with self._transaction(passthrough=(IntegrityError,)) as session:
                return await self._bump_sequence(session, year)
        except IntegrityError:
            # Another writer created the year row first; it exists now
            logger.info("Sequence row created concurrently, retrying", extra={"year": year})

        async with self._transaction() as session:
            return await self._bump_sequence(session, year)

    async def _bump_sequence(self, session: AsyncSession, year: int) -> int:
        value = await self._increment(session, year)
        if value is None:
            session.add(IncidentSequenceModel(year=year, last_value=1))
            await session.flush()
            value = 1
        return value

    async def _increment(self, session: AsyncSession, year: int) -> Optional[int]:
        stmt = (
            update(IncidentSequenceModel)
            .where(IncidentSequenceModel.year == year)
            .values(last_value=IncidentSequenceModel.last_value + 1)
            .returning(IncidentSequenceModel.last_value)
            .execution_options(synchronize_session=False)
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def create(self, incident: Incident) -> Incident:
        async with self._transaction() as session:
            session.add(IncidentModel(**self._to_row(incident)))
        return incident

    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        async with self._transaction() as session:
            model = await session.get(IncidentModel, incident_id)
            return self._to_entity(model) if model else None

    async def save(self, incident: Incident) -> Incident:
        row = self._to_row(incident)
        row.pop("id")
        row["version"] = incident.version + 1

        async with self._transaction() as session:
            stmt = (
                update(IncidentModel)
                .where(IncidentModel.id == incident.id)
                .where(IncidentModel.version == incident.version)
                .values(**row)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if result.rowcount != 1:
                exists = await session.scalar(
                    select(IncidentModel.id).where(IncidentModel.id == incident.id)
                )
                if exists is None:
                    raise ResourceNotFoundException("Incident", incident.id)
                raise ConcurrentModificationException(incident.id, incident.version)

        incident.version += 1
        return incident

    async def find_live_incidents(self) -> List[Incident]:
        async with self._transaction() as session:
            stmt = (
                select(IncidentModel)
                .where(IncidentModel.status.in_([s.value for s in LIVE_STATUSES]))
                .order_by(IncidentModel.sla_deadline)
            )
            result = await session.execute(stmt)
            return [self._to_entity(model) for model in result.scalars().all()]

    async def count_resolved_between(self, start: datetime, end: datetime) -> int:
        async with self._transaction() as session:
            stmt = (
                select(func.count(IncidentModel.id))
                .where(IncidentModel.resolved_at >= _to_utc(start))
                .where(IncidentModel.resolved_at < _to_utc(end))
            )
            return int(await session.scalar(stmt) or 0)

    # ========== Mapping ==========

    @staticmethod
    def _to_row(incident: Incident) -> Dict[str, Any]:
        return {
            "id": incident.id,
            "incident_number": incident.incident_number,
            "title": incident.title,
            "description": incident.description,
            "severity": incident.severity.value,
            "status": incident.status.value,
            "reporter_id": incident.reporter_id,
            "responder_id": incident.responder_id,
            "reported_at": _to_utc(incident.reported_at),
            "acknowledged_at": _to_utc(incident.acknowledged_at),
            "resolved_at": _to_utc(incident.resolved_at),
            "closed_at": _to_utc(incident.closed_at),
            "updated_at": _to_utc(incident.updated_at),
            "sla_deadline": _to_utc(incident.sla_deadline),
            "sla_clock_started_at": _to_utc(incident.sla_clock_started_at),
            "sla_status": incident.sla_status.value,
            "sla_breached_at": _to_utc(incident.sla_breached_at),
            "sla_met": incident.sla_met,
            "affected_service": incident.affected_service,
            "impacted_users": incident.impacted_users,
            "status_log": [entry.to_dict() for entry in incident.status_log],
            "comments": [comment.to_dict() for comment in incident.comments],
            "version": incident.version,
        }

    @staticmethod
    def _to_entity(model: IncidentModel) -> Incident:
        return Incident(
            id=model.id,
            incident_number=model.incident_number,
            title=model.title,
            description=model.description,
            severity=Severity(model.severity),
            status=IncidentStatus(model.status),
            reporter_id=model.reporter_id,
            responder_id=model.responder_id,
            reported_at=_to_utc(model.reported_at),
            acknowledged_at=_to_utc(model.acknowledged_at),
            resolved_at=_to_utc(model.resolved_at),
            closed_at=_to_utc(model.closed_at),
            updated_at=_to_utc(model.updated_at),
            sla_deadline=_to_utc(model.sla_deadline),
            sla_clock_started_at=_to_utc(model.sla_clock_started_at),
            sla_status=SLAClassification(model.sla_status),
            sla_breached_at=_to_utc(model.sla_breached_at),
            sla_met=model.sla_met,
            affected_service=model.affected_service,
            impacted_users=model.impacted_users,
            status_log=[StatusChange.from_dict(entry) for entry in (model.status_log or [])],
            comments=[Comment.from_dict(entry) for entry in (model.comments or [])],
            version=model.version,
        )


class SQLAlchemyUserDirectory(_TransactionalRepository, IUserDirectory):
    """SQLAlchemy implementation of the user roster."""

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._transaction() as session:
            model = await session.get(UserModel, user_id)
            return self._to_entity(model) if model else None

    async def list_active_admins(self) -> List[User]:
        async with self._transaction() as session:
            stmt = (
                select(UserModel)
                .where(UserModel.role == UserRole.ADMIN.value)
                .where(UserModel.is_active.is_(True))
                .order_by(UserModel.id)
            )
            result = await session.execute(stmt)
            return [self._to_entity(model) for model in result.scalars().all()]

    async def add(self, user: User) -> User:
        async with self._transaction() as session:
            session.add(UserModel(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role.value,
                is_active=user.is_active,
            ))
        return user

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            role=UserRole(model.role),
            is_active=model.is_active,
        )
