"""Tracking endpoints.

POST   /api/v1/tracking/universes                -- start tracking
DELETE /api/v1/tracking/universes/{universe_id}  -- stop tracking (history kept)
"""

from fastapi import APIRouter, HTTPException

from universe_radar.dependencies import Roblox, Store
from universe_radar.schemas.tracking import TrackRequest, TrackResponse, UntrackResponse
from universe_radar.services.tracking import track

router = APIRouter(prefix="/api/v1/tracking", tags=["tracking"])


@router.post("/universes", response_model=TrackResponse)
async def track_universe(body: TrackRequest, store: Store, client: Roblox) -> TrackResponse:
    universe_id = await track(
        store,
        client,
        universe_id=body.universe_id,
        place_id=body.place_id,
        candidate_id=body.id,
        name=body.name,
    )
    if universe_id is None:
        raise HTTPException(
            status_code=400,
            detail="Provide universe_id or a resolvable place_id/id",
        )
    return TrackResponse(universe_id=universe_id)


@router.delete("/universes/{universe_id}", response_model=UntrackResponse)
async def untrack_universe(universe_id: int, store: Store) -> UntrackResponse:
    if not await store.untrack_universe(universe_id):
        raise HTTPException(status_code=404, detail="Universe not found")
    return UntrackResponse()
