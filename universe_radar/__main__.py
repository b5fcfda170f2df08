"""Command-line entry point: `python -m universe_radar <command>`.

Commands:
    serve                      -- run the API (and scheduler) under uvicorn
    run-once                   -- live cache, hourly snapshot, daily metadata, once each
    snapshot                   -- hourly snapshot only
    live-cache                 -- live cache only
    metadata                   -- daily metadata only
    backfill <id> [hours]      -- seed past hours for one universe
    resolve <place_id>         -- print the universe id for a place id
    track <id> / untrack <id>  -- change the tracked set
    discover [max]             -- track universes found on Roblox explore sorts
"""

import argparse
import asyncio
import json
import sys

import structlog

from universe_radar.config import settings
from universe_radar.logging_config import configure_logging
from universe_radar.runtime import open_runtime
from universe_radar.services.tracking import track
from universe_radar.worker.backfill import backfill_universe
from universe_radar.worker.discovery_worker import run_auto_discovery
from universe_radar.worker.live_cache_worker import run_live_cache
from universe_radar.worker.metadata_worker import run_daily_metadata
from universe_radar.worker.snapshot_worker import SnapshotOrchestrator

log = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="universe_radar", description=settings.app_name)
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with the scheduler")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("run-once", help="Run every job once")
    sub.add_parser("snapshot", help="Run the hourly snapshot once")
    sub.add_parser("live-cache", help="Run the live cache once")
    sub.add_parser("metadata", help="Run the metadata refresh once")

    backfill = sub.add_parser("backfill", help="Seed past hours for one universe")
    backfill.add_argument("universe_id", type=int)
    backfill.add_argument("hours", type=int, nargs="?", default=6)

    resolve = sub.add_parser("resolve", help="Resolve a place id to its universe id")
    resolve.add_argument("place_id", type=int)

    track_cmd = sub.add_parser("track", help="Track a universe (or place) id")
    track_cmd.add_argument("id", type=int)
    untrack_cmd = sub.add_parser("untrack", help="Stop tracking a universe")
    untrack_cmd.add_argument("universe_id", type=int)

    discover = sub.add_parser("discover", help="Track universes found on explore sorts")
    discover.add_argument("max_ids", type=int, nargs="?", default=None)

    return parser


async def run_command(args: argparse.Namespace) -> int:
    async with open_runtime() as rt:
        if args.command in ("run-once", "live-cache"):
            await run_live_cache(rt.store, rt.client)
        if args.command in ("run-once", "snapshot"):
            await SnapshotOrchestrator(rt.store, rt.client).run_snapshot()
        if args.command in ("run-once", "metadata"):
            await run_daily_metadata(rt.store, rt.client)

        if args.command == "backfill":
            await backfill_universe(rt.store, rt.client, args.universe_id, args.hours)
        elif args.command == "resolve":
            universe_id = await rt.client.resolve_universe_id(args.place_id)
            print(json.dumps({"place_id": args.place_id, "universe_id": universe_id}, indent=2))
        elif args.command == "track":
            universe_id = await track(rt.store, rt.client, candidate_id=args.id)
            if universe_id is None:
                log.error("track_failed", id=args.id)
                return 1
        elif args.command == "discover":
            result = await run_auto_discovery(rt.store, rt.client, args.max_ids)
            print(json.dumps(result.as_dict(), indent=2))
        elif args.command == "untrack":
            if not await rt.store.untrack_universe(args.universe_id):
                log.error("untrack_failed", universe_id=args.universe_id, reason="not_found")
                return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("universe_radar.main:app", host=args.host, port=args.port, log_config=None)
        return 0

    return asyncio.run(run_command(args))


if __name__ == "__main__":
    sys.exit(main())
