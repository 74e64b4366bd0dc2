"""Notification channels."""

from .email import SmtpConfig
from .notifier import Notifier
from .webhook import MessageCard

__all__ = ["MessageCard", "Notifier", "SmtpConfig"]
