"""Process-level wiring shared by the API lifespan and the CLI."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from universe_radar.clients.roblox import RobloxClient
from universe_radar.database import make_engine, make_session_factory
from universe_radar.store import TimeSeriesStore


@dataclass
class Runtime:
    engine: AsyncEngine
    store: TimeSeriesStore
    client: RobloxClient


@asynccontextmanager
async def open_runtime(database_url: Optional[str] = None) -> AsyncIterator[Runtime]:
    """Build engine, store and upstream client; release them on exit."""
    engine = make_engine(database_url)
    client = RobloxClient()
    try:
        yield Runtime(
            engine=engine,
            store=TimeSeriesStore(make_session_factory(engine)),
            client=client,
        )
    finally:
        await client.close()
        await engine.dispose()
