from __future__ import annotations

import asyncio
from typing import Sequence
from urllib.parse import urlsplit

from opswatch.config import MonitoringConfig
from opswatch.notifications.notifier import Notifier
from opswatch.pipeline.base import MonitorPipeline, TickContext
from opswatch.pipeline.digest import Digest
from opswatch.probes.chain_health import ChainHealth, ChainHealthProbe
from opswatch.store.config_store import ConfigStore


class ChainHealthPipeline(MonitorPipeline[str, ChainHealth]):
    """Transaction activity on the monitored chain; alerts go to the webhook only."""

    family = "chain_health"
    webhook_title = "Chain Status Warning"
    sends_email = False

    def __init__(
        self,
        config: MonitoringConfig,
        config_store: ConfigStore,
        notifier: Notifier,
        probe: ChainHealthProbe,
    ) -> None:
        super().__init__(config, config_store, notifier)
        self.chain_probe = probe

    async def load_items(self) -> Sequence[str]:
        endpoint = await asyncio.to_thread(self.config_store.get, self.config.l2.rpc_key)
        return [endpoint.strip()]

    async def probe(self, ctx: TickContext, item: str) -> ChainHealth:
        return await self.chain_probe.check(item)

    def describe(self, ctx: TickContext, item: str, value: ChainHealth, digest: Digest) -> None:
        summary = (
            f"{value.transactions} transactions in blocks {value.first_block}..{value.head} "
            f"(minimum {value.min_transactions})"
        )
        if value.healthy:
            digest.add_status(f"{self.config.l2.display_name} is healthy: {summary}")
            return
        digest.add_status(f"{self.config.l2.display_name} is unhealthy: {summary}")
        digest.add_alert(f"{self.config.l2.display_name} looks stalled: {summary}.")

    def describe_failure(self, ctx: TickContext, item: str, error: Exception, digest: Digest) -> None:
        digest.add_alert(f"{self.config.l2.display_name} status check failed: {error}")

    def item_label(self, item: str) -> str:
        return urlsplit(item).netloc or item
