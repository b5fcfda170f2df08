from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class BreakoutItem(BaseModel):
    universe_id: int
    name: Optional[str] = None
    ts: datetime
    dz: Optional[float] = None       # z-score of the latest 1h playing delta
    accel: Optional[float] = None    # reserved
    sustain: Optional[float] = None  # 6h EMA of playing deltas
    wilson: Optional[float] = None   # Wilson lower bound of latest votes


class BreakoutsResponse(BaseModel):
    items: list[BreakoutItem]
