"""Seed a universe's history with readings stamped at past hours.

The upstream only exposes current values, so every backfilled hour holds
the same reading. Useful to give a newly tracked universe a window before
its first scored snapshot; existing hours are left untouched.
"""

from datetime import datetime, timedelta
from typing import Callable

import structlog

from universe_radar.clients.roblox import RobloxClient
from universe_radar.store import TimeSeriesStore
from universe_radar.worker.batch import fetch_universe_reading, truncate_to_hour, utc_now

log = structlog.get_logger(__name__)


async def backfill_universe(
    store: TimeSeriesStore,
    client: RobloxClient,
    universe_id: int,
    hours: int = 6,
    clock: Callable[[], datetime] = utc_now,
) -> int:
    """Write one snapshot per hour for the past `hours` hours.

    Returns the number of rows actually inserted.
    """
    if hours < 1:
        raise ValueError("hours must be >= 1")

    current_hour = truncate_to_hour(clock())
    inserted = 0
    for offset in range(hours, 0, -1):
        ts = current_hour - timedelta(hours=offset)
        reading = await fetch_universe_reading(client, universe_id)
        async with store.unit_of_work() as uow:
            await uow.upsert_universe_metadata(universe_id, reading.metadata(), seen_at=clock())
            if await uow.append_snapshot_if_absent(universe_id, ts, reading.metrics()):
                inserted += 1

    log.info("backfill_completed", universe_id=universe_id, hours=hours, inserted=inserted)
    return inserted
