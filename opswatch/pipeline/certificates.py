from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from opswatch.config import MonitoringConfig
from opswatch.notifications.notifier import Notifier
from opswatch.pipeline.base import MonitorPipeline, TickContext
from opswatch.pipeline.digest import Digest
from opswatch.probes.certificate import CertificateInfo, CertificateProbe, format_duration, is_expiring
from opswatch.store.config_store import Category, ConfigEntry, ConfigStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CertificatePipeline(MonitorPipeline[ConfigEntry, CertificateInfo]):
    """Certificate expiry for every active ``domain`` row."""

    family = "certificates"
    email_subject = "SSL Certificate Expiration Warning"
    webhook_title = "SSL Certificate Expiration Warning"

    def __init__(
        self,
        config: MonitoringConfig,
        config_store: ConfigStore,
        notifier: Notifier,
        probe: CertificateProbe,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(config, config_store, notifier)
        self.cert_probe = probe
        self.clock = clock
        self.alert_window = timedelta(hours=config.cert_alert_window_hours)

    async def load_items(self) -> Sequence[ConfigEntry]:
        return await asyncio.to_thread(self.config_store.list, Category.DOMAIN, True)

    async def probe(self, ctx: TickContext, item: ConfigEntry) -> CertificateInfo:
        not_after = await self.cert_probe.check_expiry(item.value)
        return CertificateInfo(domain=item.value, not_after=not_after)

    def describe(self, ctx: TickContext, item: ConfigEntry, value: CertificateInfo, digest: Digest) -> None:
        now = self.clock()
        remaining = value.not_after - now
        digest.add_status(f"Domain {value.domain} expires in {format_duration(remaining)}")
        if is_expiring(value.not_after, now, self.alert_window):
            expires = value.not_after.strftime("%Y-%m-%d %H:%M:%S UTC")
            digest.add_alert(
                f"The SSL certificate for {value.domain} will expire on {expires} "
                f"(in {format_duration(remaining)})."
            )

    def item_label(self, item: ConfigEntry) -> str:
        return item.value
