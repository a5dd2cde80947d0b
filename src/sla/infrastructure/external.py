"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- YAML policy file loader with watchdog hot-reload
- APScheduler wrapper running the sweep and the daily summary
"""

import asyncio
import threading
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.core import ConfigurationException
from src.incidents.application.services import utc_now
from src.shared.infrastructure.logging import get_logger
from src.sla.domain.entities import SweepResult
from src.sla.domain.value_objects import ISLAPolicyProvider, SLAPolicyConfig

logger = get_logger(__name__)

SWEEP_JOB_ID = "sla_sweep"
DAILY_SUMMARY_JOB_ID = "sla_daily_summary"


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, policy_manager: "SLAPolicyManager", config_path: Path):
        self.policy_manager = policy_manager
        self.config_path = config_path
        super().__init__()

    def _matches(self, path: str) -> bool:
        return Path(path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        if not event.is_directory and self._matches(event.src_path):
            logger.info("SLA policy file changed", extra={"path": event.src_path})
            self.policy_manager.reload()

    def on_created(self, event):
        # Editors that save via rename produce a create event
        self.on_modified(event)


class SLAPolicyManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy provider with hot-reload support.

    Uses watchdog to monitor the YAML file and swap the policy table
    without restarting the service. A reload that fails validation keeps
    the previous table.
    """

    def __init__(self):
        self._config: Optional[SLAPolicyConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicyConfig:
        """
        Initial policy load.

        Raises:
            ConfigurationException: file exists but is not a valid policy table
        """
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, OSError) as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {self._path}: {e}",
                {"path": str(self._path)}
            ) from e
        with self._lock:
            self._config = config
        logger.info(
            "SLA policies loaded",
            extra={"path": str(self._path), "policies": len(config.policies)}
        )
        return config

    def _load_from_file(self, path: Path) -> SLAPolicyConfig:
        """Load and parse YAML policy file."""
        if not path.exists():
            logger.warning(
                "SLA policy file not found, using default resolution table",
                extra={"path": str(path)}
            )
            return SLAPolicyConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAPolicyConfig(**data)

    def reload(self) -> bool:
        """Reload policies from file, keeping the current table on failure."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, OSError) as e:
            logger.error(
                "Failed to reload SLA policies, keeping previous table",
                extra={"path": str(self._path), "error": str(e)}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA policies reloaded", extra={"policies": len(new_config.policies)})
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skips watching if the file doesn't exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Policies not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "SLA policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent.resolve()), recursive=False)
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            # File watching not supported (e.g., in some containers)
            logger.warning("File watching not available, using static policies", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get_config(self) -> SLAPolicyConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA policies not loaded")
            return self._config


def parse_hour_minute(value: str) -> Tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


class SLAScheduler:
    """
    Wrapper for APScheduler running the SLA sweep and the daily summary.

    `tick()` runs one sweep and can be called directly (tests, manual
    trigger). A tick that fires while a sweep is running is skipped, not
    queued. `stop()` pauses triggers and waits for the in-flight sweep.
    """

    def __init__(
        self,
        sweep_job: Callable[[], Awaitable[SweepResult]],
        summary_job: Optional[Callable[[], Awaitable[object]]] = None,
        interval_minutes: int = 15,
        daily_summary_time: str = "09:00",
        timezone: Optional[str] = None
    ):
        self._sweep_job = sweep_job
        self._summary_job = summary_job
        self.interval_minutes = interval_minutes
        self.daily_summary_time = daily_summary_time
        self._timezone = timezone
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._in_flight = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._last_result: Optional[SweepResult] = None

    async def start(self) -> None:
        """Start the scheduler with the sweep and summary jobs."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler(timezone=self._timezone) if self._timezone else AsyncIOScheduler()

        self._scheduler.add_job(
            self._scheduled_tick,
            "interval",
            minutes=self.interval_minutes,
            id=SWEEP_JOB_ID,
            name="SLA Sweep Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        if self._summary_job is not None:
            hour, minute = parse_hour_minute(self.daily_summary_time)
            self._scheduler.add_job(
                self._scheduled_summary,
                "cron",
                hour=hour,
                minute=minute,
                id=DAILY_SUMMARY_JOB_ID,
                name="Daily Summary Job",
                misfire_grace_time=300,
                max_instances=1,
                replace_existing=True
            )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={
                "interval_minutes": self.interval_minutes,
                "daily_summary_time": self.daily_summary_time,
            }
        )

    async def tick(self) -> SweepResult:
        """
        Run one sweep unless one is already running.

        Returns:
            The sweep result, or a result with skipped=True
        """
        if self._in_flight:
            logger.info("SLA sweep already running, tick skipped")
            return SweepResult(started_at=utc_now(), finished_at=utc_now(), skipped=True)

        self._in_flight = True
        self._idle.clear()
        try:
            result = await self._sweep_job()
            self._last_result = result
            return result
        finally:
            self._in_flight = False
            self._idle.set()

    async def _scheduled_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            logger.error("Scheduled SLA sweep failed", extra={"error_type": type(e).__name__, "error": str(e)})

    async def _scheduled_summary(self) -> None:
        try:
            await self._summary_job()
        except Exception as e:
            logger.error("Daily summary failed", extra={"error_type": type(e).__name__, "error": str(e)})

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Pause triggers, wait for an in-flight sweep, then shut down."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.pause()
            try:
                await asyncio.wait_for(self._idle.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning("In-flight SLA sweep did not finish before shutdown")
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sweep_in_progress(self) -> bool:
        return self._in_flight

    @property
    def last_result(self) -> Optional[SweepResult]:
        return self._last_result

    @property
    def next_sweep_at(self) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
