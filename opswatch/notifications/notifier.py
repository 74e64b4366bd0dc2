"""Digest delivery over email and the chat webhook."""

from __future__ import annotations

import asyncio
import smtplib
from typing import Sequence

import httpx
import structlog

from opswatch.errors import EmailDeliveryError
from opswatch.notifications.email import SmtpConfig, send_email
from opswatch.notifications.webhook import MessageCard, redact_url, send_webhook

logger = structlog.get_logger(__name__)


class Notifier:
    """Sends digests on two independent channels.

    Email goes out once per recipient and collects failures instead of
    raising. The webhook is a single POST and raises WebhookError.
    """

    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float = 15.0) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def send_email(
        self,
        smtp: SmtpConfig,
        recipients: Sequence[str],
        subject: str,
        body: str,
    ) -> list[EmailDeliveryError]:
        errors: list[EmailDeliveryError] = []
        for recipient in recipients:
            try:
                await asyncio.to_thread(send_email, smtp, recipient, subject, body)
            except (smtplib.SMTPException, OSError) as exc:
                err = EmailDeliveryError(recipient, f"{type(exc).__name__}: {exc}")
                logger.warning("Email delivery failed", recipient=recipient, error=str(exc))
                errors.append(err)
                continue
            logger.info("Sent email", recipient=recipient, subject=subject)
        return errors

    async def send_webhook(
        self,
        url: str,
        text: str,
        *,
        title: str,
        summary: str | None = None,
        markdown: bool = True,
    ) -> int:
        card = MessageCard(summary=summary or title, title=title, text=text, markdown=markdown)
        status = await send_webhook(self.client, url, card, timeout=self.timeout_seconds)
        logger.info("Sent webhook notification", url=redact_url(url), status=status, title=title)
        return status
