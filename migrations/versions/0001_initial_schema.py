"""Initial schema: universes, creators, hourly stats, trend scores, live cache

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 12:00:00.000000

universe_stats_hourly and trending_scores_hourly are keyed by
(universe_id, ts). Writers rely on that key for their conflict clauses:
snapshots use ON CONFLICT DO NOTHING, trend scores ON CONFLICT DO UPDATE.

Written manually (not via autogenerate) consistent with project migration policy.
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "creators",
        sa.Column("creator_id", sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column("creator_type", sa.String(10), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.PrimaryKeyConstraint("creator_id", name="pk_creators"),
    )

    op.create_table(
        "universes",
        sa.Column("universe_id", sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("server_size", sa.Integer(), nullable=True),
        sa.Column(
            "creator_id",
            sa.BigInteger(),
            sa.ForeignKey("creators.creator_id", name="fk_universes_creator_id_creators"),
            nullable=True,
        ),
        sa.Column("root_place_id", sa.BigInteger(), nullable=True),
        sa.Column("is_tracked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("universe_id", name="pk_universes"),
    )
    op.create_index("ix_universes_is_tracked", "universes", ["is_tracked"])

    op.create_table(
        "universe_stats_hourly",
        sa.Column(
            "universe_id",
            sa.BigInteger(),
            sa.ForeignKey("universes.universe_id", name="fk_universe_stats_hourly_universe_id_universes"),
            nullable=False,
        ),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("playing", sa.Integer(), nullable=True),
        sa.Column("visits_total", sa.BigInteger(), nullable=True),
        sa.Column("favorites_total", sa.BigInteger(), nullable=True),
        sa.Column("up_votes", sa.BigInteger(), nullable=True),
        sa.Column("down_votes", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("universe_id", "ts", name="pk_universe_stats_hourly"),
    )

    op.create_table(
        "trending_scores_hourly",
        sa.Column(
            "universe_id",
            sa.BigInteger(),
            sa.ForeignKey("universes.universe_id", name="fk_trending_scores_hourly_universe_id_universes"),
            nullable=False,
        ),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dz_playing_1h", sa.Float(), nullable=True),
        sa.Column("accel", sa.Float(), nullable=True),
        sa.Column("sustain_6h", sa.Float(), nullable=True),
        sa.Column("wilson_score", sa.Float(), nullable=True),
        sa.Column("rank_bucket", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("universe_id", "ts", name="pk_trending_scores_hourly"),
    )
    # Breakouts query: latest row per universe
    op.create_index("ix_trending_scores_hourly_ts", "trending_scores_hourly", ["ts"])

    op.create_table(
        "universe_live_cache",
        sa.Column(
            "universe_id",
            sa.BigInteger(),
            sa.ForeignKey("universes.universe_id", name="fk_universe_live_cache_universe_id_universes"),
            nullable=False,
        ),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("playing", sa.Integer(), nullable=True),
        sa.Column("favorites_total", sa.BigInteger(), nullable=True),
        sa.Column("up_votes", sa.BigInteger(), nullable=True),
        sa.Column("down_votes", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("universe_id", name="pk_universe_live_cache"),
    )


def downgrade() -> None:
    op.drop_table("universe_live_cache")
    op.drop_index("ix_trending_scores_hourly_ts", table_name="trending_scores_hourly")
    op.drop_table("trending_scores_hourly")
    op.drop_table("universe_stats_hourly")
    op.drop_index("ix_universes_is_tracked", table_name="universes")
    op.drop_table("universes")
    op.drop_table("creators")
