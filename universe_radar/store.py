"""Time-series store over SQLAlchemy async sessions.

The store is constructed by the process entry point from an
async_sessionmaker and injected into the jobs; it never reaches for a
module-level engine.

Conflict semantics are explicit per operation rather than hidden in call
sites:

  append_snapshot_if_absent  -- INSERT ... ON CONFLICT DO NOTHING.
                                Hourly snapshots are a ledger; the first
                                write for an hour wins.
  upsert_trend_score         -- INSERT ... ON CONFLICT DO UPDATE (all
                                columns). Trend rows are a recomputable
                                view; the latest computation wins.
  upsert_universe_metadata   -- INSERT ... ON CONFLICT DO UPDATE with
                                COALESCE, so a null never erases a known
                                value.

Both PostgreSQL (production) and SQLite (tests) support ON CONFLICT; the
insert construct is picked from the bound dialect.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence

import structlog
from sqlalchemy import and_, func, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from universe_radar.models import Creator, HourlySnapshot, LiveCache, TrendScoreRow, Universe
from universe_radar.services.trends import SnapshotPoint, TrendScore

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UniverseMetadata:
    name: Optional[str] = None
    description: Optional[str] = None
    server_size: Optional[int] = None
    root_place_id: Optional[int] = None


@dataclass(frozen=True)
class SnapshotMetrics:
    playing: Optional[int] = None
    visits_total: Optional[int] = None
    favorites_total: Optional[int] = None
    up_votes: Optional[int] = None
    down_votes: Optional[int] = None


def _insert(session: AsyncSession, model):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect {dialect!r}")


def _coalesce(value, column):
    # Typed bind so asyncpg can infer the parameter type of a NULL
    return func.coalesce(literal(value, type_=column.type), column)


class SnapshotUnitOfWork:
    """Writes and reads for one universe inside a single transaction.

    Obtained from TimeSeriesStore.unit_of_work(); the transaction commits
    when the block exits cleanly and rolls back on any exception, so a
    snapshot is never left without its trend row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert_universe_metadata(
        self,
        universe_id: int,
        fields: UniverseMetadata,
        seen_at: datetime,
        coalesce: bool = True,
    ) -> None:
        """Create or update display metadata and stamp last_seen_at.

        With coalesce=True an incoming None keeps the stored value.
        last_seen_at is updated unconditionally.
        """
        stmt = _insert(self.session, Universe).values(
            universe_id=universe_id,
            name=fields.name,
            description=fields.description,
            server_size=fields.server_size,
            root_place_id=fields.root_place_id,
            last_seen_at=seen_at,
        )
        excluded = stmt.excluded
        columns = ("name", "description", "server_size", "root_place_id")
        if coalesce:
            set_ = {c: func.coalesce(excluded[c], getattr(Universe, c)) for c in columns}
        else:
            set_ = {c: excluded[c] for c in columns}
        set_["last_seen_at"] = excluded.last_seen_at

        await self.session.execute(
            stmt.on_conflict_do_update(index_elements=[Universe.universe_id], set_=set_)
        )

    async def refresh_universe_metadata(
        self, universe_id: int, fields: UniverseMetadata, updated_at: datetime
    ) -> bool:
        """Coalesce metadata onto an existing universe and stamp updated_at."""
        result = await self.session.execute(
            update(Universe)
            .where(Universe.universe_id == universe_id)
            .values(
                name=_coalesce(fields.name, Universe.name),
                description=_coalesce(fields.description, Universe.description),
                server_size=_coalesce(fields.server_size, Universe.server_size),
                root_place_id=_coalesce(fields.root_place_id, Universe.root_place_id),
                updated_at=updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def append_snapshot_if_absent(
        self, universe_id: int, ts: datetime, metrics: SnapshotMetrics
    ) -> bool:
        """Insert the hourly row unless one exists. Returns True if inserted."""
        stmt = (
            _insert(self.session, HourlySnapshot)
            .values(
                universe_id=universe_id,
                ts=ts,
                playing=metrics.playing,
                visits_total=metrics.visits_total,
                favorites_total=metrics.favorites_total,
                up_votes=metrics.up_votes,
                down_votes=metrics.down_votes,
            )
            .on_conflict_do_nothing(
                index_elements=[HourlySnapshot.universe_id, HourlySnapshot.ts]
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def read_snapshot_window(
        self, universe_id: int, since: datetime, until: Optional[datetime] = None
    ) -> list[SnapshotPoint]:
        """Snapshots with since <= ts (<= until), oldest first."""
        stmt = select(
            HourlySnapshot.ts,
            HourlySnapshot.playing,
            HourlySnapshot.up_votes,
            HourlySnapshot.down_votes,
        ).where(
            HourlySnapshot.universe_id == universe_id,
            HourlySnapshot.ts >= since,
        )
        if until is not None:
            stmt = stmt.where(HourlySnapshot.ts <= until)
        result = await self.session.execute(stmt.order_by(HourlySnapshot.ts))
        return [
            SnapshotPoint(
                ts=row.ts,
                playing=row.playing,
                up_votes=row.up_votes,
                down_votes=row.down_votes,
            )
            for row in result.all()
        ]

    async def upsert_trend_score(self, universe_id: int, ts: datetime, score: TrendScore) -> None:
        """Insert or replace the trend row for (universe_id, ts)."""
        stmt = _insert(self.session, TrendScoreRow).values(
            universe_id=universe_id,
            ts=ts,
            dz_playing_1h=score.dz,
            accel=score.acceleration,
            sustain_6h=score.sustain,
            wilson_score=score.wilson,
            rank_bucket=score.rank_bucket,
        )
        excluded = stmt.excluded
        await self.session.execute(
            stmt.on_conflict_do_update(
                index_elements=[TrendScoreRow.universe_id, TrendScoreRow.ts],
                set_={
                    "dz_playing_1h": excluded.dz_playing_1h,
                    "accel": excluded.accel,
                    "sustain_6h": excluded.sustain_6h,
                    "wilson_score": excluded.wilson_score,
                    "rank_bucket": excluded.rank_bucket,
                },
            )
        )

    async def upsert_live_cache(
        self, universe_id: int, fetched_at: datetime, metrics: SnapshotMetrics
    ) -> None:
        stmt = _insert(self.session, LiveCache).values(
            universe_id=universe_id,
            fetched_at=fetched_at,
            playing=metrics.playing,
            favorites_total=metrics.favorites_total,
            up_votes=metrics.up_votes,
            down_votes=metrics.down_votes,
        )
        excluded = stmt.excluded
        await self.session.execute(
            stmt.on_conflict_do_update(
                index_elements=[LiveCache.universe_id],
                set_={
                    "fetched_at": excluded.fetched_at,
                    "playing": excluded.playing,
                    "favorites_total": excluded.favorites_total,
                    "up_votes": excluded.up_votes,
                    "down_votes": excluded.down_votes,
                },
            )
        )

    async def upsert_creator(self, creator_id: int, creator_type: str, name: Optional[str]) -> None:
        stmt = _insert(self.session, Creator).values(
            creator_id=creator_id, creator_type=creator_type, name=name
        )
        excluded = stmt.excluded
        await self.session.execute(
            stmt.on_conflict_do_update(
                index_elements=[Creator.creator_id],
                set_={
                    "creator_type": excluded.creator_type,
                    "name": func.coalesce(excluded.name, Creator.name),
                },
            )
        )

    async def set_universe_creator(self, universe_id: int, creator_id: int) -> None:
        await self.session.execute(
            update(Universe)
            .where(Universe.universe_id == universe_id)
            .values(creator_id=creator_id)
            .execution_options(synchronize_session=False)
        )


class TimeSeriesStore:
    """Entry point to persistence for jobs and routes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[SnapshotUnitOfWork]:
        async with self._session_factory() as session:
            async with session.begin():
                yield SnapshotUnitOfWork(session)

    async def list_tracked_universe_ids(self) -> list[int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Universe.universe_id)
                .where(Universe.is_tracked.is_(True))
                .order_by(Universe.universe_id)
            )
            return list(result.scalars().all())

    async def track_universe(self, universe_id: int, name: Optional[str] = None) -> None:
        """Mark a universe tracked, creating its row if needed."""
        async with self.unit_of_work() as uow:
            stmt = _insert(uow.session, Universe).values(
                universe_id=universe_id, name=name, is_tracked=True
            )
            await uow.session.execute(
                stmt.on_conflict_do_update(
                    index_elements=[Universe.universe_id],
                    set_={
                        "is_tracked": True,
                        "name": func.coalesce(stmt.excluded.name, Universe.name),
                    },
                )
            )
        log.info("universe_tracked", universe_id=universe_id)

    async def track_universes(self, universe_ids: Sequence[int]) -> tuple[int, int]:
        """Mark many universes tracked in one transaction.

        Returns (newly_tracked, total_tracked); ids already tracked are not
        counted as new.
        """
        tracked_count = select(func.count()).select_from(Universe).where(Universe.is_tracked.is_(True))
        async with self.unit_of_work() as uow:
            before = (await uow.session.execute(tracked_count)).scalar_one()
            # PostgreSQL rejects an upsert that touches the same row twice
            unique_ids = list(dict.fromkeys(universe_ids))
            if unique_ids:
                stmt = _insert(uow.session, Universe).values(
                    [{"universe_id": universe_id, "is_tracked": True} for universe_id in unique_ids]
                )
                await uow.session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=[Universe.universe_id],
                        set_={"is_tracked": True},
                    )
                )
            total = (await uow.session.execute(tracked_count)).scalar_one()
        return max(0, total - before), total

    async def untrack_universe(self, universe_id: int) -> bool:
        """Clear the tracked flag. The row and its history are kept."""
        async with self.unit_of_work() as uow:
            result = await uow.session.execute(
                update(Universe)
                .where(Universe.universe_id == universe_id)
                .values(is_tracked=False)
                .execution_options(synchronize_session=False)
            )
            found = result.rowcount > 0
        if found:
            log.info("universe_untracked", universe_id=universe_id)
        return found

    async def latest_breakouts(self, limit: int = 50, min_votes: int = 0) -> list[dict]:
        """Latest trend row per universe, highest dz first (nulls last).

        min_votes filters on up + down votes of the snapshot taken in the
        same hour as the trend row.
        """
        latest = (
            select(
                TrendScoreRow.universe_id,
                func.max(TrendScoreRow.ts).label("ts"),
            )
            .group_by(TrendScoreRow.universe_id)
            .subquery()
        )
        stmt = (
            select(
                TrendScoreRow.universe_id,
                Universe.name,
                TrendScoreRow.ts,
                TrendScoreRow.dz_playing_1h,
                TrendScoreRow.accel,
                TrendScoreRow.sustain_6h,
                TrendScoreRow.wilson_score,
            )
            .join(
                latest,
                and_(
                    latest.c.universe_id == TrendScoreRow.universe_id,
                    latest.c.ts == TrendScoreRow.ts,
                ),
            )
            .join(Universe, Universe.universe_id == TrendScoreRow.universe_id)
            .outerjoin(
                HourlySnapshot,
                and_(
                    HourlySnapshot.universe_id == TrendScoreRow.universe_id,
                    HourlySnapshot.ts == TrendScoreRow.ts,
                ),
            )
            .order_by(TrendScoreRow.dz_playing_1h.desc().nulls_last(), TrendScoreRow.universe_id)
            .limit(limit)
        )
        if min_votes > 0:
            total_votes = func.coalesce(HourlySnapshot.up_votes, 0) + func.coalesce(
                HourlySnapshot.down_votes, 0
            )
            stmt = stmt.where(total_votes >= min_votes)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                {
                    "universe_id": row.universe_id,
                    "name": row.name,
                    "ts": row.ts,
                    "dz": row.dz_playing_1h,
                    "accel": row.accel,
                    "sustain": row.sustain_6h,
                    "wilson": row.wilson_score,
                }
                for row in result.all()
            ]
