"""Tracking: decide which universes the jobs poll.

Users often paste a place id (from a game URL) instead of a universe id.
A bare id is therefore first tried as a universe and, when the games
endpoint knows nothing about it, resolved as a place.
"""

from typing import Optional

import structlog

from universe_radar.clients.roblox import RobloxClient, UpstreamError
from universe_radar.store import TimeSeriesStore

log = structlog.get_logger(__name__)


async def _looks_like_universe(client: RobloxClient, candidate_id: int) -> bool:
    try:
        details = await client.get_game_details(candidate_id)
    except UpstreamError as exc:
        log.debug("universe_lookup_failed", candidate_id=candidate_id, error=str(exc))
        return False
    return details.name is not None or details.playing is not None


async def resolve_universe_id(
    client: RobloxClient,
    universe_id: Optional[int] = None,
    place_id: Optional[int] = None,
    candidate_id: Optional[int] = None,
) -> Optional[int]:
    """Pick a universe id from whichever identifier the caller supplied."""
    if universe_id is not None:
        return universe_id
    if place_id is not None:
        return await client.resolve_universe_id(place_id)
    if candidate_id is not None:
        if await _looks_like_universe(client, candidate_id):
            return candidate_id
        return await client.resolve_universe_id(candidate_id)
    return None


async def track(
    store: TimeSeriesStore,
    client: RobloxClient,
    universe_id: Optional[int] = None,
    place_id: Optional[int] = None,
    candidate_id: Optional[int] = None,
    name: Optional[str] = None,
) -> Optional[int]:
    """Resolve and mark a universe tracked. Returns None if nothing resolved."""
    resolved = await resolve_universe_id(client, universe_id, place_id, candidate_id)
    if resolved is None:
        log.info(
            "track_unresolved",
            universe_id=universe_id,
            place_id=place_id,
            candidate_id=candidate_id,
        )
        return None
    await store.track_universe(resolved, name=name)
    return resolved
