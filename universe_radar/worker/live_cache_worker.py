"""Live cache job: overwrite the latest reading for every tracked universe.

Runs every few minutes so list views can show near-current player counts
without waiting for the hourly snapshot.
"""

import time
from datetime import datetime
from typing import Callable

import structlog

from universe_radar.clients.roblox import RobloxClient
from universe_radar.metrics import job_duration, record_outcome
from universe_radar.store import TimeSeriesStore
from universe_radar.worker.batch import JobResult, fetch_universe_reading, utc_now

JOB_NAME = "live_cache"

log = structlog.get_logger(__name__)


async def run_live_cache(
    store: TimeSeriesStore,
    client: RobloxClient,
    clock: Callable[[], datetime] = utc_now,
) -> JobResult:
    universe_ids = await store.list_tracked_universe_ids()
    log.info("live_cache_started", universes=len(universe_ids))

    start = time.monotonic()

    result = JobResult()
    for universe_id in universe_ids:
        try:
            reading = await fetch_universe_reading(client, universe_id)
            async with store.unit_of_work() as uow:
                await uow.upsert_live_cache(universe_id, clock(), reading.metrics())
        except Exception as exc:
            result.failed += 1
            record_outcome(JOB_NAME, success=False)
            log.warning("live_cache_universe_failed", universe_id=universe_id, error=str(exc))
        else:
            result.success += 1
            record_outcome(JOB_NAME, success=True)

    job_duration.labels(job=JOB_NAME).observe(time.monotonic() - start)

    log.info("live_cache_completed", success=result.success, failed=result.failed)
    return result
