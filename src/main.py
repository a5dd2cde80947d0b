"""
Incident SLA Service - Main Application
=======================================

Incident lifecycle and SLA compliance engine.

Modules:
- Incidents: report, assign, transition, re-prioritise, comment
- SLA Monitoring: deadlines, periodic sweep, daily summary
- Notifications: event shaping and delivery

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, the state machine
- Infrastructure: Database, policy file, scheduler, webhook
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration
from src.config import settings

# Infrastructure
from src.infrastructure.database import (
    close_database, create_tables, get_session_maker, init_database
)

# Incidents
from src.incidents.application import IIncidentRepository, IUserDirectory, IncidentService
from src.incidents.domain import IncidentStateMachine
from src.incidents.infrastructure import SQLAlchemyIncidentRepository, SQLAlchemyUserDirectory
from src.incidents.interfaces import incidents_router

# Notifications
from src.notifications.application import INotificationDispatcher, NotificationPublisher
from src.notifications.infrastructure import create_dispatcher

# SLA
from src.sla.application import DailySummaryService, SLAMonitorService
from src.sla.domain import DeadlineCalculator, ISLAPolicyProvider, SLAEvaluator
from src.sla.infrastructure import SLAPolicyManager, SLAScheduler
from src.sla.interfaces import sla_router

# Shared
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from src.shared.infrastructure.locks import KeyedLock
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    incident_repository: IIncidentRepository,
    user_directory: IUserDirectory,
    dispatcher: INotificationDispatcher,
    policy_provider: ISLAPolicyProvider,
) -> SLAScheduler:
    """
    Build the service graph and store it in app.state for the controllers.

    The incident service and the monitor share one KeyedLock so sweep writes
    and lifecycle changes on the same incident are serialised.
    """
    locks = KeyedLock()
    deadline_calculator = DeadlineCalculator(policy_provider)
    evaluator = SLAEvaluator(policy_provider)
    publisher = NotificationPublisher(dispatcher, user_directory)

    incident_service = IncidentService(
        incident_repository,
        user_directory,
        IncidentStateMachine(deadline_calculator),
        publisher,
        locks,
    )
    monitor = SLAMonitorService(
        incident_repository,
        evaluator,
        publisher,
        locks,
        concurrency=settings.sla_sweep_concurrency,
        timeout_seconds=settings.sla_sweep_timeout_seconds,
    )
    daily_summary = DailySummaryService(
        incident_repository, publisher, timezone_name=settings.scheduler_timezone
    )

    scheduler = SLAScheduler(
        monitor.run_sweep,
        daily_summary.run,
        interval_minutes=settings.sla_sweep_interval_minutes,
        daily_summary_time=settings.daily_summary_time,
        timezone=settings.scheduler_timezone,
    )

    app.state.settings = settings
    app.state.incident_service = incident_service
    app.state.sla_evaluator = evaluator
    app.state.sla_policy_provider = policy_provider
    app.state.sla_monitor = monitor
    app.state.sla_scheduler = scheduler
    app.state.notification_dispatcher = dispatcher
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA policies and watch the file
    4. Create the notification dispatcher
    5. Wire services and start the SLA scheduler

    SHUTDOWN (reverse order):
    1. Stop the scheduler, waiting for an in-flight sweep
    2. Close the dispatcher
    3. Stop the policy watcher
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Incident SLA Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Tables are created for development - use Alembic in production
    try:
        await create_tables()
    except Exception as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    logger.info("Loading SLA policies")
    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_config_path)
    policy_manager.start_watching()

    dispatcher = create_dispatcher()

    session_maker = get_session_maker()
    scheduler = wire_services(
        app,
        SQLAlchemyIncidentRepository(session_maker),
        SQLAlchemyUserDirectory(session_maker),
        dispatcher,
        policy_manager,
    )
    await scheduler.start()

    logger.info("Incident SLA Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Incident SLA Service")

    await scheduler.stop(timeout=settings.sla_sweep_timeout_seconds)
    await dispatcher.close()
    policy_manager.stop_watching()
    await close_database()

    logger.info("Incident SLA Service shutdown complete")


def create_app() -> FastAPI:
    application = FastAPI(
        title="Incident SLA Service API",
        description="""
    ## Incident Lifecycle & SLA Compliance Engine

    **Incidents** (`/incidents`): report, assign, change status or severity, comment.
    Caller identity comes from the `X-Actor-Id` / `X-Actor-Role` headers.

    **SLA** (`/sla`): on-demand SLA view, manual sweep, policy table, scheduler status.

    **Default resolution budgets:** CRITICAL 4h, HIGH 8h, MEDIUM 24h, LOW 48h.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # LoggingMiddleware is added first so it runs inside CorrelationIDMiddleware
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    register_exception_handlers(application)

    application.include_router(incidents_router)
    application.include_router(sla_router)

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports scheduler state and whether the policy file is watched.
        """
        state = request.app.state
        scheduler = getattr(state, "sla_scheduler", None)
        provider = getattr(state, "sla_policy_provider", None)

        checks = {
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "sla_policies": "loaded" if provider is not None else "not_loaded",
            "sla_policy_watch": "watching" if getattr(provider, "is_watching", False) else "static",
            "last_sweep": (
                scheduler.last_result.to_dict()
                if scheduler and scheduler.last_result else None
            ),
        }

        return {
            "status": "healthy" if provider is not None else "degraded",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @application.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "incidents": {"prefix": "/incidents"},
                "sla": {"prefix": "/sla"},
            }
        }

    return application


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
