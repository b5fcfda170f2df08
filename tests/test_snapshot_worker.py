"""End-to-end tests for the hourly snapshot job against a SQLite store."""

import httpx
import pytest
from prometheus_client import REGISTRY
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from conftest import HOUR, make_client
from universe_radar.clients.roblox import RetryPolicy, RobloxClient, TransientUpstreamError
from universe_radar.models import HourlySnapshot, TrendScoreRow, Universe
from universe_radar.services.trends import TrendScore
from universe_radar.store import SnapshotUnitOfWork
from universe_radar.worker import SnapshotOrchestrator


def _outcomes(job):
    def value(outcome):
        sample = REGISTRY.get_sample_value(
            "universe_radar_job_universes_total", {"job": job, "outcome": outcome}
        )
        return sample or 0.0

    return value("success"), value("failed")


async def _trend_row(session_factory, universe_id):
    async with session_factory() as session:
        result = await session.execute(
            select(TrendScoreRow).where(TrendScoreRow.universe_id == universe_id)
        )
        return result.scalar_one()


async def _snapshot_row(session_factory, universe_id):
    async with session_factory() as session:
        result = await session.execute(
            select(HourlySnapshot)
            .where(HourlySnapshot.universe_id == universe_id)
            .order_by(HourlySnapshot.ts.desc())
        )
        return result.scalars().first()


@pytest.mark.anyio
async def test_spike_is_scored(store, session_factory, clock, seed_snapshots):
    await store.track_universe(1)
    await seed_snapshots(1, [100, 110, 105])
    orchestrator = SnapshotOrchestrator(store, make_client(playing=140, votes=(90, 10)), clock=clock)

    result = await orchestrator.run_snapshot()

    assert result.as_dict() == {"success": 1, "failed": 0}
    row = await _trend_row(session_factory, 1)
    assert row.ts.replace(tzinfo=None) == HOUR.replace(tzinfo=None)
    assert row.dz_playing_1h == pytest.approx(32.5 / 7.5)
    assert row.dz_playing_1h > 4
    assert row.accel is None
    assert row.rank_bucket is None
    assert row.wilson_score == pytest.approx(0.826, abs=1e-3)


@pytest.mark.anyio
async def test_first_snapshot_has_no_dz(store, session_factory, clock):
    await store.track_universe(1)
    client = make_client(playing=500, votes=(10, 0), favorites=20)

    await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    snapshot = await _snapshot_row(session_factory, 1)
    assert snapshot.ts.replace(tzinfo=None) == HOUR.replace(tzinfo=None)
    assert (snapshot.playing, snapshot.visits_total, snapshot.favorites_total) == (500, 1_000, 20)
    assert (snapshot.up_votes, snapshot.down_votes) == (10, 0)

    row = await _trend_row(session_factory, 1)
    assert row.dz_playing_1h is None
    assert row.sustain_6h == 0.0
    assert row.wilson_score == pytest.approx(0.7225, abs=1e-3)


@pytest.mark.anyio
async def test_metadata_is_coalesced_onto_universe(store, session_factory, clock):
    await store.track_universe(1)

    await SnapshotOrchestrator(store, make_client(playing=5), clock=clock).run_snapshot()

    async with session_factory() as session:
        universe = await session.get(Universe, 1)
    assert universe.name == "Universe 1"
    assert universe.server_size == 30
    assert universe.last_seen_at is not None
    assert universe.is_tracked is True


@pytest.mark.anyio
async def test_rerun_in_same_hour_keeps_snapshot_and_replaces_trend(
    store, session_factory, clock, count_rows
):
    await store.track_universe(1)
    await SnapshotOrchestrator(store, make_client(playing=100), clock=clock).run_snapshot()

    # Tamper with the trend row so the replace is observable
    async with store.unit_of_work() as uow:
        await uow.upsert_trend_score(
            1, HOUR, TrendScore(dz=999.0, acceleration=None, sustain=1.0, wilson=None, rank_bucket=None)
        )

    result = await SnapshotOrchestrator(store, make_client(playing=900), clock=clock).run_snapshot()

    assert result.success == 1
    assert await count_rows(HourlySnapshot, universe_id=1) == 1
    assert await count_rows(TrendScoreRow, universe_id=1) == 1
    assert (await _snapshot_row(session_factory, 1)).playing == 100
    row = await _trend_row(session_factory, 1)
    assert row.dz_playing_1h is None
    assert row.sustain_6h == 0.0


@pytest.mark.anyio
async def test_partial_failure_is_counted_not_raised(store, clock, count_rows):
    for universe_id in (1, 2, 3, 4):
        await store.track_universe(universe_id)
    client = make_client(
        playing=10,
        failing_ids=(2, 4),
        error=TransientUpstreamError("rate limited", status_code=429),
    )
    success_before, failed_before = _outcomes("hourly_snapshot")
    runs_before = REGISTRY.get_sample_value(
        "universe_radar_job_duration_seconds_count", {"job": "hourly_snapshot"}
    ) or 0.0

    result = await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    assert result.as_dict() == {"success": 2, "failed": 2}
    success_after, failed_after = _outcomes("hourly_snapshot")
    assert (success_after - success_before, failed_after - failed_before) == (2, 2)
    assert REGISTRY.get_sample_value(
        "universe_radar_job_duration_seconds_count", {"job": "hourly_snapshot"}
    ) == runs_before + 1
    assert await count_rows(HourlySnapshot, universe_id=1) == 1
    assert await count_rows(HourlySnapshot, universe_id=3) == 1
    assert await count_rows(HourlySnapshot, universe_id=2) == 0
    assert await count_rows(TrendScoreRow, universe_id=4) == 0


@pytest.mark.anyio
async def test_total_outage(store, clock, count_rows):
    for universe_id in (1, 2, 3):
        await store.track_universe(universe_id)
    client = make_client(
        failing_ids=(1, 2, 3),
        error=TransientUpstreamError("unavailable", status_code=503),
    )

    result = await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    assert result.as_dict() == {"success": 0, "failed": 3}
    assert await count_rows(HourlySnapshot) == 0


@pytest.mark.anyio
async def test_no_tracked_universes(store, clock):
    result = await SnapshotOrchestrator(store, make_client(), clock=clock).run_snapshot()

    assert result.as_dict() == {"success": 0, "failed": 0}


@pytest.mark.anyio
async def test_sibling_fetches_complete_when_details_fail(store, clock):
    await store.track_universe(1)
    client = make_client(failing_ids=(1,), error=TransientUpstreamError("boom"))

    result = await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    assert result.failed == 1
    client.get_votes.assert_awaited_once_with(1)
    client.get_favorites.assert_awaited_once_with(1)


@pytest.mark.anyio
async def test_favorites_not_found_is_stored_as_null(store, session_factory, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/favorites/count"):
            return httpx.Response(404)
        if request.url.path.endswith("/votes"):
            return httpx.Response(200, json={"data": [{"id": 1, "upVotes": 4, "downVotes": 1}]})
        return httpx.Response(200, json={"data": [{"id": 1, "name": "Obby", "playing": 12}]})

    await store.track_universe(1)
    client = RobloxClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(base_delay=0, max_delay=0, jitter=0),
    )

    result = await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    assert result.as_dict() == {"success": 1, "failed": 0}
    snapshot = await _snapshot_row(session_factory, 1)
    assert snapshot.playing == 12
    assert snapshot.favorites_total is None
    assert (snapshot.up_votes, snapshot.down_votes) == (4, 1)


@pytest.mark.anyio
async def test_store_failure_rolls_back_the_universe(store, session_factory, clock, count_rows, monkeypatch):
    async def failing_upsert(self, universe_id, ts, score):
        raise SQLAlchemyError("disk full")

    await store.track_universe(1)
    monkeypatch.setattr(SnapshotUnitOfWork, "upsert_trend_score", failing_upsert)

    result = await SnapshotOrchestrator(store, make_client(playing=10), clock=clock).run_snapshot()

    assert result.as_dict() == {"success": 0, "failed": 1}
    assert await count_rows(HourlySnapshot) == 0
    async with session_factory() as session:
        universe = await session.get(Universe, 1)
    assert universe.last_seen_at is None


@pytest.mark.anyio
async def test_untracked_universes_are_skipped(store, clock, count_rows):
    await store.track_universe(1)
    await store.track_universe(2)
    await store.untrack_universe(2)
    client = make_client(playing=10)

    result = await SnapshotOrchestrator(store, client, clock=clock).run_snapshot()

    assert result.success == 1
    client.get_game_details.assert_awaited_once_with(1)
    assert await count_rows(HourlySnapshot, universe_id=2) == 0
