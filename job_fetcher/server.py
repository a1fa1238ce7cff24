"""HTTP front door: liveness check and on-demand runs."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, HTTPException

from job_fetcher.config import Settings, load_profiles
from job_fetcher.log import get_logger
from job_fetcher.models import QueryProfile
from job_fetcher.pipeline import run_profile
from job_fetcher.scheduler import FetchScheduler
from job_fetcher.sources import JobSource, get_source
from job_fetcher.store import JobStore, connect_store

log = get_logger(__name__)

LIVENESS = {"message": "Job fetcher service is running."}


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    log.error(
        "Unhandled error in event loop: %s",
        context.get("message", "unknown"),
        exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
    )


def create_app(
    settings: Settings,
    *,
    store: JobStore | None = None,
    source: JobSource | None = None,
    profiles: dict[str, QueryProfile] | None = None,
) -> FastAPI:
    """Build the app; missing collaborators are created from ``settings`` at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        asyncio.get_running_loop().set_exception_handler(_log_loop_exception)

        app.state.store = store or connect_store(settings)
        app.state.source = source or get_source(settings)
        app.state.profiles = profiles if profiles is not None else load_profiles(
            settings.queries_path, settings.default_timezone
        )
        runner = partial(
            _run,
            app,
            fail_when_all_failed=settings.fail_when_all_failed,
        )
        app.state.scheduler = FetchScheduler(
            app.state.profiles,
            runner,
            misfire_grace_seconds=settings.misfire_grace_seconds,
        )
        if settings.scheduler_enabled:
            app.state.scheduler.start()
        else:
            log.info("Scheduler disabled (SCHEDULER_ENABLED=false); on-demand runs only")
        log.info("Application started")
        try:
            yield
        finally:
            app.state.scheduler.shutdown()
            if store is None:
                app.state.store.dispose()
            log.info("Application stopped")

    app = FastAPI(
        title="Job Fetcher",
        description="Periodically fetches Google Jobs listings and stores new ones",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/")
    async def liveness():
        return LIVENESS

    @app.get("/profiles")
    def list_profiles():
        scheduler: FetchScheduler = app.state.scheduler
        next_runs = scheduler.next_run_times()
        return [
            {
                "name": p.name,
                "schedule": p.schedule,
                "timezone": p.timezone,
                "queries": len(p.queries),
                "next_run": next_runs[p.name].isoformat() if next_runs.get(p.name) else None,
            }
            for p in app.state.profiles.values()
        ]

    @app.post("/runs/{profile}")
    def trigger_run(profile: str):
        """Run a profile immediately, outside its schedule."""
        scheduler: FetchScheduler = app.state.scheduler
        if profile not in scheduler.profiles:
            raise HTTPException(status_code=404, detail=f"Unknown profile: {profile}")
        summary = scheduler.trigger(profile)
        if summary is None:
            raise HTTPException(
                status_code=409,
                detail=f"Run already in progress: {scheduler.current_profile}",
            )
        return summary.as_dict()

    return app


def _run(app: FastAPI, profile: QueryProfile, *, fail_when_all_failed: bool):
    return run_profile(
        profile,
        source=app.state.source,
        store=app.state.store,
        fail_when_all_failed=fail_when_all_failed,
    )

