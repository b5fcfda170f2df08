"""In-process job scheduler.

Each job gets its own asyncio task that sleeps until the next interval
boundary (UTC), runs the job, and loops. A failing cycle is logged and the
loop keeps going. The hourly snapshot fires at minute 0, auto-discovery at
minute 5 and the daily metadata refresh at 03:10 UTC.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from universe_radar.clients.roblox import RobloxClient
from universe_radar.config import settings
from universe_radar.store import TimeSeriesStore
from universe_radar.worker.batch import utc_now
from universe_radar.worker.discovery_worker import run_auto_discovery
from universe_radar.worker.live_cache_worker import run_live_cache
from universe_radar.worker.metadata_worker import run_daily_metadata
from universe_radar.worker.snapshot_worker import SnapshotOrchestrator

log = structlog.get_logger(__name__)

DISCOVERY_OFFSET_SECONDS = 5 * 60
METADATA_OFFSET_SECONDS = 3 * 3600 + 10 * 60


def seconds_until_next_run(now: datetime, interval_seconds: int, offset_seconds: int = 0) -> float:
    """Seconds from `now` to the next epoch-aligned boundary (plus offset)."""
    epoch = now.timestamp()
    next_run = ((epoch - offset_seconds) // interval_seconds + 1) * interval_seconds + offset_seconds
    return next_run - epoch


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    # Returns None or a result exposing as_dict()
    run: Callable[[], Awaitable[Any]]
    interval_seconds: int
    offset_seconds: int = 0


async def run_job_loop(
    job: ScheduledJob,
    clock: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    log.info("job_loop_started", job=job.name, interval_seconds=job.interval_seconds)
    while True:
        delay = seconds_until_next_run(clock(), job.interval_seconds, job.offset_seconds)
        await sleep(delay)
        try:
            result = await job.run()
            if result is not None:
                log.info("job_completed", job=job.name, **result.as_dict())
        except Exception:
            log.error("job_failed", job=job.name, exc_info=True)


class JobScheduler:
    """Owns the background job tasks; started and stopped by the entry point."""

    def __init__(self, store: TimeSeriesStore, client: RobloxClient) -> None:
        orchestrator = SnapshotOrchestrator(store, client)
        self.jobs = [
            ScheduledJob(
                name="hourly_snapshot",
                run=orchestrator.run_snapshot,
                interval_seconds=settings.snapshot_interval_minutes * 60,
            ),
            ScheduledJob(
                name="live_cache",
                run=lambda: run_live_cache(store, client),
                interval_seconds=settings.live_cache_interval_minutes * 60,
            ),
            ScheduledJob(
                name="auto_discovery",
                run=lambda: run_auto_discovery(store, client),
                interval_seconds=settings.discovery_interval_minutes * 60,
                offset_seconds=DISCOVERY_OFFSET_SECONDS,
            ),
            ScheduledJob(
                name="daily_metadata",
                run=lambda: run_daily_metadata(store, client),
                interval_seconds=settings.metadata_interval_hours * 3600,
                offset_seconds=METADATA_OFFSET_SECONDS,
            ),
        ]
        self.tasks: dict[str, asyncio.Task] = {}

    def start(self) -> None:
        for job in self.jobs:
            self.tasks[job.name] = asyncio.create_task(run_job_loop(job), name=job.name)
        log.info("scheduler_started", jobs=[job.name for job in self.jobs])

    async def stop(self) -> None:
        for task in self.tasks.values():
            task.cancel()
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()
        log.info("scheduler_stopped")
