from .base import Base
from .universe import Creator, CreatorType, Universe
from .hourly_stats import HourlySnapshot
from .trend_score import TrendScoreRow
from .live_cache import LiveCache

__all__ = [
    "Base",
    "Creator",
    "CreatorType",
    "Universe",
    "HourlySnapshot",
    "TrendScoreRow",
    "LiveCache",
]
