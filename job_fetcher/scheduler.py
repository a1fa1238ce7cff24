"""Cron scheduling of query profiles with a single run guard.

Every profile gets its own cron job, but all of them (and operator-triggered
runs) go through :meth:`FetchScheduler.trigger`, which holds one process-wide
lock for the whole batch. A trigger that arrives while a run is in progress is
skipped, not queued.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Mapping

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler

from job_fetcher.config import cron_trigger
from job_fetcher.log import get_logger
from job_fetcher.models import QueryProfile, RunSummary

log = get_logger(__name__)

Runner = Callable[[QueryProfile], RunSummary]


class FetchScheduler:
    def __init__(
        self,
        profiles: Mapping[str, QueryProfile],
        runner: Runner,
        *,
        misfire_grace_seconds: int = 3600,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.profiles = dict(profiles)
        self.runner = runner
        self.misfire_grace_seconds = misfire_grace_seconds
        self.scheduler = scheduler or BackgroundScheduler()
        self._run_lock = threading.Lock()
        self._current: str | None = None
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def current_profile(self) -> str | None:
        return self._current

    def trigger(self, name: str) -> RunSummary | None:
        """Run profile ``name`` now; None if another run holds the guard."""
        profile = self.profiles[name]
        if not self._run_lock.acquire(blocking=False):
            log.warning("Run [%s] skipped: run [%s] still in progress", name, self._current)
            return None
        self._current = name
        try:
            return self.runner(profile)
        finally:
            self._current = None
            self._run_lock.release()

    def _scheduled_run(self, name: str) -> None:
        log.info("Cron job triggered: fetching jobs [%s]", name)
        try:
            self.trigger(name)
        except Exception:
            log.exception("Scheduled run [%s] crashed", name)

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            log.warning("Scheduled job %s missed its run time %s", event.job_id, event.scheduled_run_time)
        elif event.exception is not None:
            log.error("Scheduled job %s raised: %s", event.job_id, event.exception)

    def add_jobs(self) -> None:
        for name, profile in self.profiles.items():
            self.scheduler.add_job(
                self._scheduled_run,
                cron_trigger(profile.schedule, profile.timezone),
                args=[name],
                id=f"fetch:{name}",
                name=f"fetch {name}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.misfire_grace_seconds,
            )
            log.info("Scheduled profile %s: '%s' (%s)", name, profile.schedule, profile.timezone)

    def start(self) -> None:
        self.add_jobs()
        self.scheduler.start()
        for name, when in self.next_run_times().items():
            log.info("Next run of %s at %s", name, when)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            log.info("Scheduler stopped")

    def next_run_times(self) -> dict[str, datetime | None]:
        out: dict[str, datetime | None] = {}
        for name in self.profiles:
            job = self.scheduler.get_job(f"fetch:{name}")
            out[name] = getattr(job, "next_run_time", None) if job else None
        return out
