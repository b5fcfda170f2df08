from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class LiveCache(Base):
    """Latest reading per universe, overwritten by every live-cache run."""

    __tablename__ = "universe_live_cache"

    universe_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("universes.universe_id"), primary_key=True
    )
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    playing: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    favorites_total: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    up_votes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    down_votes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
