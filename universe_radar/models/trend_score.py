"""Hourly trend score model.

Derived from the trailing universe_stats_hourly window. Unlike snapshots,
a recomputation for the same hour replaces the row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TrendScoreRow(Base):
    __tablename__ = "trending_scores_hourly"

    universe_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("universes.universe_id"), primary_key=True
    )
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True, index=True)
    dz_playing_1h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Reserved, always NULL for now
    accel: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sustain_6h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    wilson_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Reserved, always NULL for now
    rank_bucket: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
