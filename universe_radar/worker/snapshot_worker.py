"""Hourly snapshot job.

For every tracked universe, one after another:
1. Fetch details, votes and favorites concurrently
2. Coalesce display metadata onto the universe row, stamp last_seen_at
3. Append the hourly snapshot (ignored if this hour already has one)
4. Read back the trailing 14-day window
5. Score it and insert-or-replace the trend row for this hour

Steps 2-5 share one transaction. Universes are processed sequentially to
bound outbound request volume; a failure only costs that universe and is
counted, never raised.
"""

import time
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from universe_radar.clients.roblox import RobloxClient
from universe_radar.config import settings
from universe_radar.services.trends import TrendScore, compute_trend_score
from universe_radar.metrics import job_duration, record_outcome
from universe_radar.store import TimeSeriesStore
from universe_radar.worker.batch import JobResult, fetch_universe_reading, truncate_to_hour, utc_now

JOB_NAME = "hourly_snapshot"

log = structlog.get_logger(__name__)


class SnapshotOrchestrator:
    def __init__(
        self,
        store: TimeSeriesStore,
        client: RobloxClient,
        clock: Callable[[], datetime] = utc_now,
        window_hours: Optional[int] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.clock = clock
        self.window = timedelta(hours=window_hours or settings.trend_window_hours)

    async def run_snapshot(self) -> JobResult:
        """Snapshot and score every tracked universe for the current hour.

        Only a failure to list tracked universes propagates; every
        per-universe failure is logged and counted.
        """
        universe_ids = await self.store.list_tracked_universe_ids()
        ts = truncate_to_hour(self.clock())
        log.info("snapshot_started", universes=len(universe_ids), ts=ts.isoformat())

        start = time.monotonic()

        result = JobResult()
        for universe_id in universe_ids:
            try:
                await self.snapshot_universe(universe_id, ts)
            except Exception as exc:
                result.failed += 1
                record_outcome(JOB_NAME, success=False)
                log.warning(
                    "snapshot_universe_failed",
                    universe_id=universe_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            else:
                result.success += 1
                record_outcome(JOB_NAME, success=True)

        job_duration.labels(job=JOB_NAME).observe(time.monotonic() - start)

        log.info("snapshot_completed", success=result.success, failed=result.failed)
        return result

    async def snapshot_universe(self, universe_id: int, ts: datetime) -> TrendScore:
        reading = await fetch_universe_reading(self.client, universe_id)

        async with self.store.unit_of_work() as uow:
            await uow.upsert_universe_metadata(universe_id, reading.metadata(), seen_at=self.clock())
            inserted = await uow.append_snapshot_if_absent(universe_id, ts, reading.metrics())
            window = await uow.read_snapshot_window(universe_id, since=ts - self.window, until=ts)
            score = compute_trend_score(window)
            await uow.upsert_trend_score(universe_id, ts, score)

        log.debug(
            "universe_snapshotted",
            universe_id=universe_id,
            snapshot_inserted=inserted,
            window_points=len(window),
            dz=score.dz,
            sustain=score.sustain,
            wilson=score.wilson,
        )
        return score
