"""Auto-discovery: mine Roblox explore sorts for universe ids and track them.

Runs hourly, five minutes past the hour.
"""

from dataclasses import asdict, dataclass
from typing import Optional

import structlog

from universe_radar.clients.roblox import RobloxClient
from universe_radar.config import settings
from universe_radar.metrics import discovered_universes, job_duration
from universe_radar.store import TimeSeriesStore

JOB_NAME = "auto_discovery"

log = structlog.get_logger(__name__)


@dataclass
class DiscoveryResult:
    input: int = 0
    newly_tracked: int = 0
    total: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


async def run_auto_discovery(
    store: TimeSeriesStore,
    client: RobloxClient,
    max_ids: Optional[int] = None,
) -> DiscoveryResult:
    with job_duration.labels(job=JOB_NAME).time():
        universe_ids = await client.discover_universe_ids(max_ids or settings.discovery_max_universes)
        newly_tracked, total = await store.track_universes(universe_ids)

    discovered_universes.inc(newly_tracked)
    result = DiscoveryResult(input=len(universe_ids), newly_tracked=newly_tracked, total=total)
    log.info("auto_discovery_completed", **result.as_dict())
    return result
