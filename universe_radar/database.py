"""Engine and session factory construction.

Nothing here is created at import time: the process entry point (FastAPI
lifespan or CLI) builds the engine, hands the session factory to a
TimeSeriesStore, and disposes the engine on shutdown.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from universe_radar.config import settings


def make_engine(database_url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    url = database_url or settings.database_url
    kwargs = {"echo": settings.debug if echo is None else echo}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )
