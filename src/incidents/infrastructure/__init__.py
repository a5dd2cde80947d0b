"""
Incident Infrastructure Layer
=============================

SQLAlchemy models and repositories for incidents and the user roster.
"""

from src.incidents.infrastructure.models import IncidentModel, IncidentSequenceModel, UserModel
from src.incidents.infrastructure.repositories import (
    SQLAlchemyIncidentRepository,
    SQLAlchemyUserDirectory,
)

__all__ = [
    "IncidentModel",
    "IncidentSequenceModel",
    "UserModel",
    "SQLAlchemyIncidentRepository",
    "SQLAlchemyUserDirectory",
]
