"""
Incident Application Layer
==========================

Contains:
- Services: IncidentService orchestrating the inbound operations
- Interfaces: IIncidentRepository, IUserDirectory
- DTOs: request/response models for the API
"""

from src.incidents.application.dto import (
    IncidentCreateRequest,
    AssignRequest,
    StatusUpdateRequest,
    SeverityUpdateRequest,
    CommentCreateRequest,
    IncidentResponse,
)
from src.incidents.application.services import (
    IncidentService,
    IIncidentRepository,
    IUserDirectory,
    utc_now,
)

__all__ = [
    # DTOs
    "IncidentCreateRequest",
    "AssignRequest",
    "StatusUpdateRequest",
    "SeverityUpdateRequest",
    "CommentCreateRequest",
    "IncidentResponse",
    # Services
    "IncidentService",
    "utc_now",
    # Repository Interfaces
    "IIncidentRepository",
    "IUserDirectory",
]
