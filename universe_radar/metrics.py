"""Prometheus metrics for the batch jobs, served at GET /metrics."""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

job_universes = Counter(
    "universe_radar_job_universes_total",
    "Universes processed by a batch job, by outcome",
    ["job", "outcome"],
)
job_duration = Histogram(
    "universe_radar_job_duration_seconds",
    "Wall time of one batch job run",
    ["job"],
    buckets=[0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)
discovered_universes = Counter(
    "universe_radar_discovered_universes_total",
    "Universes newly tracked by auto-discovery",
)


def record_outcome(job: str, success: bool) -> None:
    job_universes.labels(job=job, outcome="success" if success else "failed").inc()


async def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
