"""Pieces shared by the per-universe batch jobs."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

from universe_radar.clients.roblox import Favorites, GameDetails, RobloxClient, Votes
from universe_radar.store import SnapshotMetrics, UniverseMetadata


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def truncate_to_hour(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


@dataclass
class JobResult:
    success: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.success + self.failed

    def as_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed}


@dataclass(frozen=True)
class UniverseReading:
    """The three upstream readings for one universe, taken together."""

    details: GameDetails
    votes: Votes
    favorites: Favorites

    def metrics(self) -> SnapshotMetrics:
        return SnapshotMetrics(
            playing=self.details.playing,
            visits_total=self.details.visits_total,
            favorites_total=self.favorites.total,
            up_votes=self.votes.up,
            down_votes=self.votes.down,
        )

    def metadata(self) -> UniverseMetadata:
        return UniverseMetadata(
            name=self.details.name,
            description=self.details.description,
            server_size=self.details.server_size,
            root_place_id=self.details.root_place_id,
        )


async def fetch_universe_reading(client: RobloxClient, universe_id: int) -> UniverseReading:
    """Fetch details, votes and favorites concurrently.

    All three requests run to completion even if one fails; the first
    failure (in request order) is then raised. Favorites "not found" is
    already a null value at the client, so it never lands here as an error.
    """
    results = await asyncio.gather(
        client.get_game_details(universe_id),
        client.get_votes(universe_id),
        client.get_favorites(universe_id),
        return_exceptions=True,
    )
    for outcome in results:
        if isinstance(outcome, BaseException):
            raise outcome
    details, votes, favorites = results
    return UniverseReading(details=details, votes=votes, favorites=favorites)
