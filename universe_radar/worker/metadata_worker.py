"""Daily metadata refresh.

Coalesces name/description/server size onto tracked universes and links
each one to its creator. When the games endpoint omits the creator's name,
it is looked up on the groups or users endpoint.
"""

import time
from datetime import datetime
from typing import Callable, Optional

import structlog

from universe_radar.clients.roblox import CreatorRef, RobloxClient
from universe_radar.models import CreatorType
from universe_radar.metrics import job_duration, record_outcome
from universe_radar.store import TimeSeriesStore, UniverseMetadata
from universe_radar.worker.batch import JobResult, utc_now

JOB_NAME = "daily_metadata"

log = structlog.get_logger(__name__)


async def _creator_name(client: RobloxClient, creator: CreatorRef) -> Optional[str]:
    if creator.name:
        return creator.name
    if creator.type == CreatorType.GROUP.value:
        return await client.get_group_name(creator.id)
    return await client.get_user_name(creator.id)


async def run_daily_metadata(
    store: TimeSeriesStore,
    client: RobloxClient,
    clock: Callable[[], datetime] = utc_now,
) -> JobResult:
    universe_ids = await store.list_tracked_universe_ids()
    log.info("metadata_refresh_started", universes=len(universe_ids))

    start = time.monotonic()

    result = JobResult()
    for universe_id in universe_ids:
        try:
            details = await client.get_game_details(universe_id)
            creator_name = await _creator_name(client, details.creator) if details.creator else None

            async with store.unit_of_work() as uow:
                if details.creator:
                    await uow.upsert_creator(details.creator.id, details.creator.type, creator_name)
                    await uow.set_universe_creator(universe_id, details.creator.id)
                await uow.refresh_universe_metadata(
                    universe_id,
                    UniverseMetadata(
                        name=details.name,
                        description=details.description,
                        server_size=details.server_size,
                        root_place_id=details.root_place_id,
                    ),
                    updated_at=clock(),
                )
        except Exception as exc:
            result.failed += 1
            record_outcome(JOB_NAME, success=False)
            log.warning("metadata_universe_failed", universe_id=universe_id, error=str(exc))
        else:
            result.success += 1
            record_outcome(JOB_NAME, success=True)

    job_duration.labels(job=JOB_NAME).observe(time.monotonic() - start)

    log.info("metadata_refresh_completed", success=result.success, failed=result.failed)
    return result
