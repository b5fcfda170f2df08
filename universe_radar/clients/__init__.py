from .roblox import (
    CreatorRef,
    ExploreSort,
    Favorites,
    GameDetails,
    NotFoundUpstreamError,
    PermanentUpstreamError,
    RetryPolicy,
    RobloxClient,
    TransientUpstreamError,
    UpstreamError,
    Votes,
)

__all__ = [
    "CreatorRef",
    "ExploreSort",
    "Favorites",
    "GameDetails",
    "NotFoundUpstreamError",
    "PermanentUpstreamError",
    "RetryPolicy",
    "RobloxClient",
    "TransientUpstreamError",
    "UpstreamError",
    "Votes",
]
