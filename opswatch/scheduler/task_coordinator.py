"""Task coordination: one scheduled job per probe family."""

import asyncio
from collections import deque
from functools import partial
from typing import Any, Deque, Dict, List, Optional

import structlog

from ..config import MonitoringConfig, get_config
from ..pipeline.base import MonitorPipeline, TickReport
from .job_scheduler import JobScheduler

logger = structlog.get_logger(__name__)

HISTORY_LIMIT = 50


class TaskCoordinator:
    """Runs pipeline ticks on their schedules and keeps the latest reports."""

    def __init__(
        self,
        pipelines: Dict[str, MonitorPipeline],
        config: Optional[MonitoringConfig] = None,
        scheduler: Optional[JobScheduler] = None,
    ):
        self.config = config or get_config()
        self.scheduler = scheduler or JobScheduler()
        self.pipelines = pipelines
        self.last_reports: Dict[str, TickReport] = {}
        self.task_history: Deque[Dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)
        self._locks: Dict[str, asyncio.Lock] = {}

    async def start(self):
        """Start the scheduler and register the family jobs."""
        await self.scheduler.start()
        self._setup_default_jobs()
        logger.info("Task coordinator started", families=sorted(self.pipelines))

    async def stop(self):
        await self.scheduler.stop()
        logger.info("Task coordinator stopped")

    def _setup_default_jobs(self):
        startup = self.config.run_on_startup

        if "certificates" in self.pipelines:
            self.scheduler.add_cron_job(
                job_id="certificates",
                func=partial(self.run_family, "certificates"),
                cron_expression=self.config.cert_schedule_cron,
                description="TLS certificate expiry check",
                run_immediately=startup,
            )

        if "wallets" in self.pipelines:
            self.scheduler.add_cron_job(
                job_id="wallets",
                func=partial(self.run_family, "wallets"),
                cron_expression=self.config.wallet_schedule_cron,
                description="Wallet balance check",
                run_immediately=startup,
            )

        if "chain_health" in self.pipelines and self.config.chain_health_enabled:
            self.scheduler.add_interval_job(
                job_id="chain_health",
                func=partial(self.run_family, "chain_health"),
                seconds=self.config.chain_health_interval_seconds,
                description="Chain transaction activity check",
                run_immediately=startup,
            )

        logger.info(
            "Setup monitoring jobs",
            cert_schedule=self.config.cert_schedule_cron,
            wallet_schedule=self.config.wallet_schedule_cron,
            chain_health_interval=self.config.chain_health_interval_seconds if self.config.chain_health_enabled else None,
        )

    async def run_family(self, family: str) -> TickReport:
        """Run one tick; ticks of the same family are serialized."""
        pipeline = self.pipelines.get(family)
        if pipeline is None:
            raise KeyError(f"Unknown family: {family}")

        lock = self._locks.setdefault(family, asyncio.Lock())
        async with lock:
            report = await pipeline.run_tick()

        self.last_reports[family] = report
        self.task_history.append(
            {
                "family": family,
                "stage": report.stage.value,
                "started_at": report.started_at.isoformat(),
                "finished_at": report.finished_at.isoformat() if report.finished_at else None,
                "alerts": len(report.alert_lines),
                "failures": len(report.failures),
            }
        )
        return report

    def get_system_status(self) -> Dict[str, Any]:
        return {
            "scheduler_running": self.scheduler.running,
            "jobs": self.scheduler.list_jobs(),
            "last_reports": {family: report.to_dict() for family, report in self.last_reports.items()},
        }

    def get_task_history(self) -> List[Dict[str, Any]]:
        return list(self.task_history)
