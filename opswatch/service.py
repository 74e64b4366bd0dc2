"""Wires settings, storage, probes and pipelines into one runnable service."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from opswatch.config import MonitoringConfig, get_config
from opswatch.database.postgres import PostgresClient
from opswatch.notifications.notifier import Notifier
from opswatch.pipeline.base import MonitorPipeline, TickReport
from opswatch.pipeline.certificates import CertificatePipeline
from opswatch.pipeline.chain_health import ChainHealthPipeline
from opswatch.pipeline.wallets import WalletPipeline
from opswatch.probes.balance import BalanceProbe
from opswatch.probes.certificate import CertificateProbe
from opswatch.probes.chain_health import ChainHealthProbe
from opswatch.scheduler.task_coordinator import TaskCoordinator
from opswatch.store.config_store import ConfigStore
from opswatch.store.wallet_state import WalletStateStore

logger = structlog.get_logger(__name__)


def build_pipelines(
    config: MonitoringConfig,
    postgres: PostgresClient,
    http_client: httpx.AsyncClient,
) -> dict[str, MonitorPipeline]:
    timeout = config.probe_timeout_seconds
    config_store = ConfigStore(postgres)
    notifier = Notifier(http_client, timeout_seconds=timeout)
    return {
        "certificates": CertificatePipeline(
            config, config_store, notifier, CertificateProbe(timeout_seconds=timeout)
        ),
        "wallets": WalletPipeline(
            config,
            config_store,
            notifier,
            BalanceProbe(http_client, timeout_seconds=timeout),
            WalletStateStore(postgres, config.wallet_state_table),
        ),
        "chain_health": ChainHealthPipeline(
            config,
            config_store,
            notifier,
            ChainHealthProbe(
                http_client,
                block_window=config.chain_health_block_window,
                min_transactions=config.chain_health_min_transactions,
                timeout_seconds=timeout,
            ),
        ),
    }


class MonitoringService:
    """Owns the database pool and HTTP client for the life of the process."""

    def __init__(self, config: Optional[MonitoringConfig] = None):
        self.config = config or get_config()
        self.postgres = PostgresClient(self.config)
        self.http_client: httpx.AsyncClient | None = None
        self.coordinator: TaskCoordinator | None = None

    async def open(self) -> TaskCoordinator:
        """Connect storage; an unreachable database here is fatal to the process."""
        self.postgres.connect()
        WalletStateStore(self.postgres, self.config.wallet_state_table).ensure_schema()
        self.http_client = httpx.AsyncClient(follow_redirects=True)
        pipelines = build_pipelines(self.config, self.postgres, self.http_client)
        self.coordinator = TaskCoordinator(pipelines, config=self.config)
        return self.coordinator

    async def start(self) -> TaskCoordinator:
        coordinator = await self.open()
        await coordinator.start()
        return coordinator

    async def run_once(self, family: str) -> TickReport:
        coordinator = self.coordinator or await self.open()
        return await coordinator.run_family(family)

    async def close(self) -> None:
        if self.coordinator is not None:
            await self.coordinator.stop()
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
        self.postgres.close()
        logger.info("Monitoring service closed")
