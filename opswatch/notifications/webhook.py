from __future__ import annotations

from dataclasses import dataclass

import httpx

from opswatch.errors import WebhookError

MESSAGE_CARD_CONTEXT = "http://schema.org/extensions"


@dataclass(frozen=True)
class MessageCard:
    summary: str
    title: str
    text: str
    markdown: bool = True

    def to_payload(self) -> dict:
        return {
            "@type": "MessageCard",
            "@context": MESSAGE_CARD_CONTEXT,
            "summary": self.summary,
            "title": self.title,
            "text": self.text,
            "markdown": self.markdown,
        }


def redact_url(url: str) -> str:
    # Webhook URLs carry their secret in the path.
    scheme, sep, rest = str(url or "").partition("://")
    if not sep:
        return "<redacted>"
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}/<redacted>"


async def send_webhook(
    client: httpx.AsyncClient,
    url: str,
    card: MessageCard,
    *,
    timeout: float = 15.0,
) -> int:
    """POST the card as JSON; any non-2xx answer raises WebhookError."""
    if not url:
        raise WebhookError("no webhook URL configured")
    try:
        resp = await client.post(url, json=card.to_payload(), timeout=timeout)
    except httpx.HTTPError as exc:
        raise WebhookError(f"{type(exc).__name__} posting to {redact_url(url)}: {exc}") from exc
    if resp.status_code // 100 != 2:
        raise WebhookError(
            f"webhook {redact_url(url)} answered {resp.status_code}: {resp.text[:300]}",
            status_code=resp.status_code,
        )
    return resp.status_code
