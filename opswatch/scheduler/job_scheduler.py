"""APScheduler wrapper for recurring monitoring ticks."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = structlog.get_logger(__name__)


@dataclass
class ScheduledJob:
    job_id: str
    kind: str
    schedule: str
    description: Optional[str] = None
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class JobScheduler:
    """Owns the AsyncIOScheduler and the jobs registered on it.

    Every job is added with ``max_instances=1`` and ``coalesce=True``: a tick
    still running when its next fire time comes up is not started twice, and
    a backlog of missed fire times collapses into one run.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.jobs: Dict[str, ScheduledJob] = {}
        self.running = False

    async def start(self):
        if self.running:
            return
        self.scheduler.start()
        self.running = True
        logger.info("Scheduler started", jobs=len(self.jobs))

    async def stop(self):
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")

    def add_cron_job(
        self,
        job_id: str,
        func: Callable,
        cron_expression: str,
        description: Optional[str] = None,
        run_immediately: bool = False,
    ):
        """Schedule ``func`` on a five-field crontab expression, in UTC."""
        if len(cron_expression.split()) != 5:
            raise ValueError(f"Invalid cron expression: {cron_expression!r}")
        trigger = CronTrigger.from_crontab(cron_expression, timezone=timezone.utc)
        self._register(ScheduledJob(job_id, "cron", cron_expression, description), func, trigger, run_immediately)

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: int,
        description: Optional[str] = None,
        run_immediately: bool = False,
    ):
        if seconds <= 0:
            raise ValueError(f"Interval must be positive: {seconds}")
        trigger = IntervalTrigger(seconds=seconds, timezone=timezone.utc)
        self._register(ScheduledJob(job_id, "interval", f"every {seconds}s", description), func, trigger, run_immediately)

    def _register(self, entry: ScheduledJob, func: Callable, trigger: BaseTrigger, run_immediately: bool):
        options: Dict[str, Any] = {}
        if run_immediately:
            # First run now, then follow the trigger.
            options["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func,
            trigger=trigger,
            id=entry.job_id,
            name=entry.description or entry.job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
            **options,
        )
        self.jobs[entry.job_id] = entry
        logger.info(
            "Scheduled job",
            job_id=entry.job_id,
            kind=entry.kind,
            schedule=entry.schedule,
            run_immediately=run_immediately,
        )

    def remove_job(self, job_id: str) -> bool:
        if self.jobs.pop(job_id, None) is None:
            return False
        self.scheduler.remove_job(job_id)
        logger.info("Removed job", job_id=job_id)
        return True

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        entry = self.jobs.get(job_id)
        job = self.scheduler.get_job(job_id) if entry else None
        if job is None:
            return None
        next_run = getattr(job, "next_run_time", None)
        return {
            "job_id": job_id,
            "kind": entry.kind,
            "schedule": entry.schedule,
            "description": entry.description,
            "next_run": next_run.isoformat() if next_run else None,
            "added_at": entry.added_at.isoformat(),
        }

    def list_jobs(self) -> List[Dict[str, Any]]:
        statuses = (self.get_job_status(job_id) for job_id in self.jobs)
        return [status for status in statuses if status is not None]
