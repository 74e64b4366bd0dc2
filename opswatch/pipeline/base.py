"""One monitoring tick: load worklist, probe each item, aggregate, notify."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Sequence, TypeVar

import structlog

from opswatch.config import MonitoringConfig
from opswatch.errors import (
    ConfigLoadError,
    DecryptionError,
    DeliveryError,
    NotFound,
    PersistenceError,
    ProbeError,
)
from opswatch.notifications.email import SmtpConfig
from opswatch.notifications.notifier import Notifier
from opswatch.pipeline.digest import Digest, ItemOutcome
from opswatch.secrets import decrypt_secret
from opswatch.store.config_store import Category, ConfigStore

logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT")
ValueT = TypeVar("ValueT")


class Stage(str, Enum):
    LOAD_WORKLIST = "load_worklist"
    PROBE_EACH = "probe_each"
    AGGREGATE = "aggregate"
    NOTIFY = "notify"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TickContext(Generic[ItemT]):
    """Immutable snapshot of everything a tick reads from the config table."""

    items: tuple[ItemT, ...]
    webhook_url: str
    recipients: tuple[str, ...] = ()
    smtp: SmtpConfig | None = None
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class TickReport:
    family: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    stage: Stage = Stage.LOAD_WORKLIST
    failed_stage: Stage | None = None
    error: str | None = None
    items: int = 0
    status_lines: list[str] = field(default_factory=list)
    alert_lines: list[str] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)
    webhook_sent: bool = False
    emails_sent: int = 0
    delivery_errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stage == Stage.DONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "stage": self.stage.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error,
            "items": self.items,
            "status_lines": list(self.status_lines),
            "alert_lines": list(self.alert_lines),
            "failures": [{"item": item, "error": err} for item, err in self.failures],
            "webhook_sent": self.webhook_sent,
            "emails_sent": self.emails_sent,
            "delivery_errors": list(self.delivery_errors),
        }


class MonitorPipeline(Generic[ItemT, ValueT]):
    """Template for a probe family.

    Subclasses provide ``load_items``, ``probe`` and ``describe``. A failure
    while loading aborts the tick; a failure on one item only skips it.
    """

    family: str = "base"
    email_subject: str = ""
    webhook_title: str = ""
    sends_email: bool = True

    def __init__(self, config: MonitoringConfig, config_store: ConfigStore, notifier: Notifier) -> None:
        self.config = config
        self.config_store = config_store
        self.notifier = notifier
        self.log = logger.bind(family=self.family)

    async def run_tick(self) -> TickReport:
        report = TickReport(family=self.family)
        self.log.info("Tick started")

        try:
            ctx = await self.load()
        except (ConfigLoadError, NotFound, DecryptionError, PersistenceError) as exc:
            report.failed_stage = Stage.LOAD_WORKLIST
            report.stage = Stage.FAILED
            report.error = f"{type(exc).__name__}: {exc}"
            report.finished_at = datetime.now(timezone.utc)
            self.log.error("Tick aborted while loading worklist", error=report.error)
            return report

        report.items = len(ctx.items)
        report.stage = Stage.PROBE_EACH
        outcomes = [await self._probe_one(ctx, item) for item in ctx.items]

        report.stage = Stage.AGGREGATE
        digest = Digest()
        for outcome in outcomes:
            if outcome.ok:
                self.describe(ctx, outcome.item, outcome.value, digest)
            else:
                report.failures.append((self.item_label(outcome.item), str(outcome.error)))
                self.describe_failure(ctx, outcome.item, outcome.error, digest)
        for line in digest.status_lines:
            self.log.info(line)
        report.status_lines = list(digest.status_lines)
        report.alert_lines = list(digest.alert_lines)

        report.stage = Stage.NOTIFY
        await self.deliver(ctx, digest, report)

        report.stage = Stage.DONE
        report.finished_at = datetime.now(timezone.utc)
        self.log.info(
            "Tick finished",
            items=report.items,
            failures=len(report.failures),
            alerts=len(report.alert_lines),
        )
        return report

    async def _probe_one(self, ctx: TickContext, item: ItemT) -> ItemOutcome:
        try:
            value = await self.probe(ctx, item)
        except (ProbeError, PersistenceError) as exc:
            self.log.warning("Item skipped", item=self.item_label(item), error=f"{type(exc).__name__}: {exc}")
            return ItemOutcome(item=item, error=exc)
        except Exception as exc:
            self.log.exception("Item failed unexpectedly", item=self.item_label(item))
            return ItemOutcome(item=item, error=exc)
        return ItemOutcome(item=item, value=value)

    async def load(self) -> TickContext:
        items = await self.load_items()
        self.log.info("Worklist loaded", count=len(items))
        webhook_url = await asyncio.to_thread(self.config_store.get, self.config.webhook_key)
        recipients: tuple[str, ...] = ()
        smtp = None
        if self.sends_email:
            recipients = await self.load_recipients()
            smtp = await self.load_smtp()
            self.log.info("Recipients loaded", count=len(recipients))
        return TickContext(
            items=tuple(items),
            webhook_url=webhook_url,
            recipients=recipients,
            smtp=smtp,
            extras=await self.load_extras(items),
        )

    async def load_recipients(self) -> tuple[str, ...]:
        entries = await asyncio.to_thread(self.config_store.list, Category.EMAIL)
        # Sender credentials share the ``email`` type with the recipients.
        skip = {self.config.admin_password_key}
        return tuple(e.value for e in entries if e.key not in skip and e.value)

    async def load_smtp(self) -> SmtpConfig:
        user = self.config.admin_email
        if not user:
            user = await asyncio.to_thread(self.config_store.get, self.config.admin_email_key)

        password = self.config.admin_email_password
        if not password:
            password = await asyncio.to_thread(self.config_store.get, self.config.admin_password_key)
            if self.config.decrypt_key:
                password = decrypt_secret(password, self.config.decrypt_key)

        try:
            return SmtpConfig(
                host=self.config.smtp_host,
                port=self.config.smtp_port,
                user=user,
                password=password,
                timeout=self.config.smtp_timeout_seconds,
            )
        except ValueError as exc:
            raise ConfigLoadError(str(exc)) from exc

    async def deliver(self, ctx: TickContext, digest: Digest, report: TickReport) -> None:
        """Webhook and email fan-out; neither channel can block the other."""
        if not digest.has_alerts:
            self.log.info("No alerts")
            return

        try:
            await self.notifier.send_webhook(ctx.webhook_url, digest.webhook_text(), title=self.webhook_title)
            report.webhook_sent = True
        except DeliveryError as exc:
            report.delivery_errors.append(str(exc))
            self.log.warning("Webhook delivery failed", error=str(exc))

        if not self.sends_email or ctx.smtp is None:
            return
        if not ctx.recipients:
            self.log.warning("No email recipients configured")
            return
        errors = await self.notifier.send_email(ctx.smtp, ctx.recipients, self.email_subject, digest.email_body())
        report.emails_sent = len(ctx.recipients) - len(errors)
        report.delivery_errors.extend(str(e) for e in errors)

    # Family hooks

    async def load_items(self) -> Sequence[ItemT]:
        raise NotImplementedError

    async def load_extras(self, items: Sequence[ItemT]) -> dict[str, Any]:
        return {}

    async def probe(self, ctx: TickContext, item: ItemT) -> ValueT:
        raise NotImplementedError

    def describe(self, ctx: TickContext, item: ItemT, value: ValueT, digest: Digest) -> None:
        raise NotImplementedError

    def describe_failure(self, ctx: TickContext, item: ItemT, error: Exception, digest: Digest) -> None:
        pass

    def item_label(self, item: ItemT) -> str:
        return str(item)
