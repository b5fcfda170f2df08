"""FastAPI dependencies resolving the objects the lifespan put on app.state."""

from typing import Annotated

from fastapi import Depends, Request

from universe_radar.clients.roblox import RobloxClient
from universe_radar.store import TimeSeriesStore


def get_store(request: Request) -> TimeSeriesStore:
    return request.app.state.store


def get_roblox_client(request: Request) -> RobloxClient:
    return request.app.state.roblox


Store = Annotated[TimeSeriesStore, Depends(get_store)]
Roblox = Annotated[RobloxClient, Depends(get_roblox_client)]
