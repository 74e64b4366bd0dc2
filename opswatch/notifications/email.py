from __future__ import annotations

import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText


@dataclass(frozen=True)
class SmtpConfig:
    """Authenticated STARTTLS submission settings."""

    host: str
    port: int
    user: str
    password: str
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("SMTP host is required.")
        if not self.user:
            raise ValueError("Sender email is required.")


def build_message(sender: str, recipient: str, subject: str, body: str) -> MIMEText:
    msg = MIMEText(body, "plain", "utf-8")
    msg["From"] = sender
    msg["To"] = recipient
    msg["Subject"] = subject
    return msg


def send_email(config: SmtpConfig, recipient: str, subject: str, body: str) -> None:
    """Deliver one message to one recipient; raises smtplib/OSError on failure."""
    msg = build_message(config.user, recipient, subject, body)
    with smtplib.SMTP(config.host, config.port, timeout=config.timeout) as smtp:
        smtp.ehlo()
        smtp.starttls(context=ssl.create_default_context())
        smtp.ehlo()
        smtp.login(config.user, config.password)
        smtp.sendmail(config.user, [recipient], msg.as_string())
