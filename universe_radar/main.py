from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from sqlalchemy import text

from universe_radar.config import settings
from universe_radar.logging_config import configure_logging
from universe_radar.metrics import metrics_endpoint
from universe_radar.routers import radar, tracking
from universe_radar.runtime import open_runtime
from universe_radar.worker.scheduler import JobScheduler

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    async with open_runtime() as runtime:
        app.state.engine = runtime.engine
        app.state.store = runtime.store
        app.state.roblox = runtime.client

        # Start background jobs and keep them on app.state for health checks
        app.state.scheduler = JobScheduler(runtime.store, runtime.client)
        if settings.scheduler_enabled:
            app.state.scheduler.start()
        try:
            yield
        finally:
            await app.state.scheduler.stop()


app = FastAPI(title="Universe Radar API", version="0.1.0", lifespan=lifespan)

app.include_router(radar.router)
app.include_router(tracking.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check(request: Request, response: Response):
    """Health check covering the database and every scheduled job.

    Returns 200 if all components are healthy, 503 otherwise. Jobs are only
    checked when the scheduler is enabled.
    """
    checks = {}
    overall_healthy = True

    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    if settings.scheduler_enabled:
        scheduler = getattr(request.app.state, "scheduler", None)
        if scheduler is None:
            checks["scheduler"] = {"status": "unhealthy", "error": "Scheduler not initialized"}
            overall_healthy = False
        else:
            for job in scheduler.jobs:
                task = scheduler.tasks.get(job.name)
                if task is None or task.done() or task.cancelled():
                    checks[job.name] = {"status": "unhealthy", "error": "Job task stopped"}
                    overall_healthy = False
                else:
                    checks[job.name] = {"status": "healthy"}

    response.status_code = 200 if overall_healthy else 503
    return {"status": "healthy" if overall_healthy else "unhealthy", "checks": checks}
