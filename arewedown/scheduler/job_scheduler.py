"""Cron scheduling capability used by watchers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..cron import build_cron_trigger


logger = structlog.get_logger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


class Scheduler(Protocol):
    """What the engine needs from a timer implementation."""

    def start(self) -> None: ...

    def shutdown(self) -> None: ...

    def schedule(self, expression: str, callback: TickCallback, *, job_id: str, run_immediately: bool = True) -> str: ...

    def cancel(self, handle: str) -> bool: ...

    def next_run_time(self, handle: str) -> Optional[datetime]: ...


class JobScheduler:
    """Runs watcher ticks as APScheduler cron jobs on the running asyncio loop."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.running = False

    def start(self):
        """Start the job scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        self.running = True
        logger.info("Job scheduler started")

    def shutdown(self):
        """Stop issuing ticks. Ticks already running are left to finish."""
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        self.jobs.clear()
        logger.info("Job scheduler stopped")

    def schedule(
        self,
        expression: str,
        callback: TickCallback,
        *,
        job_id: str,
        run_immediately: bool = True,
    ) -> str:
        """Add a cron-scheduled job and return its handle."""
        if job_id in self.jobs:
            logger.warning("Job already exists, replacing", job_id=job_id)
            self.cancel(job_id)

        trigger = build_cron_trigger(expression)
        job_kwargs: Dict[str, Any] = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        # Overlap is refused by the watcher itself; allow a second instance through so it can log the skip.
        job = self.scheduler.add_job(
            func=callback,
            trigger=trigger,
            id=job_id,
            name=job_id,
            max_instances=2,
            coalesce=True,
            misfire_grace_time=30,
            **job_kwargs,
        )

        self.jobs[job_id] = {"job": job, "trigger": trigger}

        logger.info("Added cron job", job_id=job_id, cron=expression)
        return job_id

    def cancel(self, handle: str) -> bool:
        """Remove a scheduled job."""
        if handle not in self.jobs:
            logger.warning("Job not found", job_id=handle)
            return False

        del self.jobs[handle]
        try:
            self.scheduler.remove_job(handle)
        except Exception as e:
            logger.error("Failed to remove job", job_id=handle, error=str(e))
            return False
        logger.info("Removed job", job_id=handle)
        return True

    def next_run_time(self, handle: str) -> Optional[datetime]:
        job_info = self.jobs.get(handle)
        if job_info is None:
            return None

        # pending jobs (scheduler not started yet) have no next_run_time attribute
        next_run = getattr(job_info["job"], "next_run_time", None)
        if next_run is not None:
            return next_run
        return job_info["trigger"].get_next_fire_time(None, datetime.now(timezone.utc))
