"""Universe Radar: hourly engagement snapshots and trend scores for tracked Roblox universes."""

__version__ = "0.1.0"
