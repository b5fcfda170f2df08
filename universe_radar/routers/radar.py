"""Radar endpoints over the latest hourly trend scores.

GET /api/v1/radar/breakouts -- universes ranked by their latest dz.
"""

from fastapi import APIRouter, Query

from universe_radar.dependencies import Store
from universe_radar.schemas.radar import BreakoutItem, BreakoutsResponse

router = APIRouter(prefix="/api/v1/radar", tags=["radar"])


@router.get("/breakouts", response_model=BreakoutsResponse)
async def list_breakouts(
    store: Store,
    limit: int = Query(default=50, ge=1, le=200),
    min_votes: int = Query(default=0, ge=0),
) -> BreakoutsResponse:
    """Latest trend row per universe, highest dz first (nulls last).

    min_votes drops universes whose snapshot for that hour has fewer
    up + down votes.
    """
    rows = await store.latest_breakouts(limit=limit, min_votes=min_votes)
    return BreakoutsResponse(items=[BreakoutItem(**row) for row in rows])
