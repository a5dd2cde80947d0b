"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA monitoring endpoints.

Controllers are thin - they delegate to the evaluator and the scheduler.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.incidents.application import IncidentService, utc_now
from src.incidents.interfaces.controllers import get_incident_service
from src.sla.application import (
    IncidentSLAResponse,
    PolicyRowResponse,
    PolicyTableResponse,
    SchedulerStatusResponse,
    SweepResultResponse,
)
from src.sla.domain import ISLAPolicyProvider, SLAEvaluator
from src.sla.infrastructure import SLAScheduler

router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


# ========== Dependencies ==========

def _from_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized"
        )
    return value


def get_sla_evaluator(request: Request) -> SLAEvaluator:
    return _from_state(request, "sla_evaluator")


def get_sla_scheduler(request: Request) -> SLAScheduler:
    return _from_state(request, "sla_scheduler")


def get_policy_provider(request: Request) -> ISLAPolicyProvider:
    return _from_state(request, "sla_policy_provider")


# ========== Route Handlers ==========

@router.get(
    "/incidents/{incident_id}",
    response_model=IncidentSLAResponse,
    summary="Get SLA status for an incident",
)
async def get_incident_sla(
    incident_id: str,
    service: IncidentService = Depends(get_incident_service),
    evaluator: SLAEvaluator = Depends(get_sla_evaluator),
) -> IncidentSLAResponse:
    """
    On-demand SLA view.

    Live incidents are evaluated now with the same rules as the sweep;
    resolved and closed incidents report their frozen classification.
    """
    incident = await service.get_incident(incident_id)
    return IncidentSLAResponse.build(incident, evaluator.describe(incident, utc_now()))


@router.post(
    "/sweep",
    response_model=SweepResultResponse,
    summary="Run an SLA sweep now",
)
async def trigger_sweep(scheduler: SLAScheduler = Depends(get_sla_scheduler)) -> SweepResultResponse:
    """
    Run one sweep through the scheduler.

    If a sweep is already running, the trigger is skipped and the response
    has `skipped: true`.
    """
    result = await scheduler.tick()
    return SweepResultResponse.from_result(result)


@router.get("/policies", response_model=PolicyTableResponse, summary="Effective SLA policy table")
async def get_policies(provider: ISLAPolicyProvider = Depends(get_policy_provider)) -> PolicyTableResponse:
    config = provider.get_config()
    path = getattr(provider, "path", None)
    return PolicyTableResponse(
        warning_threshold_percent=config.warning_threshold_percent,
        policies={
            severity: PolicyRowResponse(**row)
            for severity, row in config.effective_table().items()
        },
        config_path=str(path) if path else None,
    )


@router.get("/scheduler", response_model=SchedulerStatusResponse, summary="Scheduler status")
async def get_scheduler_status(scheduler: SLAScheduler = Depends(get_sla_scheduler)) -> SchedulerStatusResponse:
    last = scheduler.last_result
    return SchedulerStatusResponse(
        running=scheduler.is_running,
        sweep_in_progress=scheduler.sweep_in_progress,
        sweep_interval_minutes=scheduler.interval_minutes,
        daily_summary_time=scheduler.daily_summary_time,
        next_sweep_at=scheduler.next_sweep_at,
        last_result=SweepResultResponse.from_result(last) if last else None,
    )


sla_router = router
