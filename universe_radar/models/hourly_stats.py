"""Hourly metric snapshot model.

One row per (universe_id, ts) where ts is the UTC clock hour. The series is
append-only: writers use insert-or-ignore, so a second scheduler firing in
the same hour is a no-op.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class HourlySnapshot(Base):
    __tablename__ = "universe_stats_hourly"

    universe_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("universes.universe_id"), primary_key=True
    )
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)
    playing: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    visits_total: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    favorites_total: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    up_votes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    down_votes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
