"""
Incident Controllers (API Routes)
=================================

FastAPI routes for the inbound incident operations.

Controllers are thin - they delegate to IncidentService. Domain and store
errors propagate to the application exception handlers.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.incidents.application import (
    AssignRequest,
    CommentCreateRequest,
    IncidentCreateRequest,
    IncidentResponse,
    IncidentService,
    SeverityUpdateRequest,
    StatusUpdateRequest,
)
from src.shared.api.dependencies import Actor, get_actor

router = APIRouter(prefix="/incidents", tags=["Incidents"])


# ========== Dependencies ==========

def get_incident_service(request: Request) -> IncidentService:
    """Get the incident service wired at startup."""
    service = getattr(request.app.state, "incident_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Incident service not initialized"
        )
    return service


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=IncidentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report an incident",
)
async def create_incident(
    body: IncidentCreateRequest,
    actor: Actor = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    """
    Report a new incident.

    The SLA deadline is computed from the severity's resolution budget.
    Unknown severities are rejected with 422.
    """
    incident = await service.create_incident(
        title=body.title,
        description=body.description,
        severity=body.severity,
        reporter_id=actor.id,
        affected_service=body.affected_service,
        impacted_users=body.impacted_users,
    )
    return IncidentResponse.from_entity(incident)


@router.get("/{incident_id}", response_model=IncidentResponse, summary="Get an incident")
async def get_incident(
    incident_id: str,
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    return IncidentResponse.from_entity(await service.get_incident(incident_id))


@router.post("/{incident_id}/assign", response_model=IncidentResponse, summary="Assign a responder")
async def assign_incident(
    incident_id: str,
    body: AssignRequest,
    actor: Actor = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    """
    Assign an active responder to an OPEN incident.

    409 if already assigned or not OPEN, 400 if the responder is invalid.
    """
    incident = await service.assign_incident(incident_id, body.responder_id, actor.id)
    return IncidentResponse.from_entity(incident)


@router.patch("/{incident_id}/status", response_model=IncidentResponse, summary="Change status")
async def update_incident_status(
    incident_id: str,
    body: StatusUpdateRequest,
    actor: Actor = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    incident = await service.update_incident_status(incident_id, body.status, actor.id, body.notes)
    return IncidentResponse.from_entity(incident)


@router.patch("/{incident_id}/severity", response_model=IncidentResponse, summary="Change severity")
async def update_incident_severity(
    incident_id: str,
    body: SeverityUpdateRequest,
    actor: Actor = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    incident = await service.update_incident_severity(incident_id, body.severity, actor.id)
    return IncidentResponse.from_entity(incident)


@router.post(
    "/{incident_id}/comments",
    response_model=IncidentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
)
async def add_comment(
    incident_id: str,
    body: CommentCreateRequest,
    actor: Actor = Depends(get_actor),
    service: IncidentService = Depends(get_incident_service),
) -> IncidentResponse:
    incident = await service.add_comment(incident_id, actor.id, body.text, body.is_internal)
    return IncidentResponse.from_entity(incident)


incidents_router = router
