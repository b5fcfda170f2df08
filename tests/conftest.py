from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from universe_radar.clients.roblox import Favorites, GameDetails, Votes
from universe_radar.database import make_engine, make_session_factory
from universe_radar.models import Base
from universe_radar.store import SnapshotMetrics, TimeSeriesStore

# 12:34:56 UTC -> snapshot hour 12:00
NOW = datetime(2026, 10, 19, 12, 34, 56, tzinfo=timezone.utc)
HOUR = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'radar.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return TimeSeriesStore(session_factory)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model, optionally filtered by column equality."""
    async def _count(model, **filters) -> int:
        stmt = select(func.count()).select_from(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        async with session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    return _count


@pytest.fixture
def seed_snapshots(store):
    """Write hourly snapshots ending one hour before HOUR.

    `playing` is a list of counts, oldest first; the last value lands at
    HOUR - 1h.
    """
    async def _seed(universe_id: int, playing: list, up_votes=None, down_votes=None):
        start = HOUR - timedelta(hours=len(playing))
        async with store.unit_of_work() as uow:
            for i, value in enumerate(playing):
                await uow.append_snapshot_if_absent(
                    universe_id,
                    start + timedelta(hours=i),
                    SnapshotMetrics(playing=value, up_votes=up_votes, down_votes=down_votes),
                )

    return _seed


def make_client(
    playing=None,
    votes=(None, None),
    favorites=None,
    failing_ids=(),
    error=None,
):
    """AsyncMock stand-in for RobloxClient.

    `playing` may be an int or a {universe_id: int} mapping. Details calls
    for ids in `failing_ids` raise `error`.
    """
    def _details(universe_id):
        if universe_id in failing_ids:
            raise error
        count = playing.get(universe_id) if isinstance(playing, dict) else playing
        return GameDetails(
            playing=count,
            visits_total=1_000,
            server_size=30,
            name=f"Universe {universe_id}",
            description=None,
        )

    client = MagicMock()
    client.get_game_details = AsyncMock(side_effect=_details)
    client.get_votes = AsyncMock(return_value=Votes(up=votes[0], down=votes[1]))
    client.get_favorites = AsyncMock(return_value=Favorites(total=favorites))
    client.resolve_universe_id = AsyncMock(return_value=None)
    client.get_group_name = AsyncMock(return_value=None)
    client.get_user_name = AsyncMock(return_value=None)
    client.discover_universe_ids = AsyncMock(return_value=[])
    return client
