"""Universe and creator models.

A universe is the trackable unit on the upstream platform. Rows are never
deleted: untracking clears is_tracked and the hourly history stays.
Display metadata (name, description, server_size) is filled opportunistically
by the snapshot and metadata jobs and is only ever coalesced, never nulled.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CreatorType(str, enum.Enum):
    USER = "USER"
    GROUP = "GROUP"


class Creator(Base):
    __tablename__ = "creators"

    creator_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    creator_type: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class Universe(Base):
    __tablename__ = "universes"

    universe_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    server_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    creator_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("creators.creator_id"), nullable=True
    )
    root_place_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    is_tracked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false(), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
