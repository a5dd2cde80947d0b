"""
SLA Scheduler - Unit Tests
==========================
Single-flight tick, job registration, graceful stop.

Run:  pytest tests/test_scheduler.py -v
"""
import asyncio

import pytest

from src.sla.domain.entities import SweepResult
from src.sla.infrastructure.external import (
    DAILY_SUMMARY_JOB_ID,
    SWEEP_JOB_ID,
    SLAScheduler,
    parse_hour_minute,
)

from tests.conftest import T0


class BlockingSweep:
    """Sweep job that waits until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls = 0

    async def __call__(self) -> SweepResult:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return SweepResult(started_at=T0, finished_at=T0, evaluated=3)


async def _noop_summary():
    return None


# ═══════════════════════════════════════════════════════════════════════════
# TICK
# ═══════════════════════════════════════════════════════════════════════════
class TestTick:
    async def test_tick_runs_sweep(self):
        async def sweep():
            return SweepResult(started_at=T0, evaluated=2, breaches=1)

        scheduler = SLAScheduler(sweep)
        result = await scheduler.tick()
        assert result.evaluated == 2
        assert scheduler.last_result is result
        assert not scheduler.sweep_in_progress

    async def test_overlapping_tick_skipped(self):
        sweep = BlockingSweep()
        scheduler = SLAScheduler(sweep)

        first = asyncio.create_task(scheduler.tick())
        await sweep.started.wait()
        assert scheduler.sweep_in_progress

        skipped = await scheduler.tick()
        assert skipped.skipped is True
        assert sweep.calls == 1

        sweep.release.set()
        result = await first
        assert result.skipped is False
        assert scheduler.last_result is result

    async def test_tick_propagates_and_resets(self):
        async def broken():
            raise RuntimeError("store gone")

        scheduler = SLAScheduler(broken)
        with pytest.raises(RuntimeError):
            await scheduler.tick()
        assert not scheduler.sweep_in_progress

    async def test_scheduled_tick_logs_failures(self):
        async def broken():
            raise RuntimeError("store gone")

        scheduler = SLAScheduler(broken)
        await scheduler._scheduled_tick()
        assert scheduler.last_result is None


# ═══════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════
class TestLifecycle:
    async def test_start_registers_jobs(self):
        sweep = BlockingSweep()
        scheduler = SLAScheduler(sweep, _noop_summary, interval_minutes=15, daily_summary_time="09:30")
        await scheduler.start()
        try:
            assert scheduler.is_running
            assert scheduler._scheduler.get_job(SWEEP_JOB_ID) is not None
            summary_job = scheduler._scheduler.get_job(DAILY_SUMMARY_JOB_ID)
            assert summary_job is not None
            assert scheduler.next_sweep_at is not None
        finally:
            await scheduler.stop()
        assert not scheduler.is_running
        assert scheduler.next_sweep_at is None

    async def test_start_twice_is_noop(self):
        scheduler = SLAScheduler(BlockingSweep())
        await scheduler.start()
        first = scheduler._scheduler
        await scheduler.start()
        assert scheduler._scheduler is first
        await scheduler.stop()

    async def test_stop_waits_for_in_flight_sweep(self):
        sweep = BlockingSweep()
        scheduler = SLAScheduler(sweep)
        await scheduler.start()

        tick = asyncio.create_task(scheduler.tick())
        await sweep.started.wait()

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()

        sweep.release.set()
        await stopping
        assert (await tick).evaluated == 3
        assert not scheduler.is_running

    async def test_stop_without_start(self):
        scheduler = SLAScheduler(BlockingSweep())
        await scheduler.stop()
        assert not scheduler.is_running

    def test_parse_hour_minute(self):
        assert parse_hour_minute("09:00") == (9, 0)
        assert parse_hour_minute("23:45") == (23, 45)
