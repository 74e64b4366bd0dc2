"""Error taxonomy for monitoring ticks.

Config errors abort a tick; probe and persistence errors skip a single item;
delivery errors are collected per channel and recipient.
"""

from __future__ import annotations


class OpsWatchError(Exception):
    """Base class for all service errors."""


class NotFound(OpsWatchError):
    """A named setting is missing from the config table."""

    def __init__(self, key: str) -> None:
        super().__init__(f"config key not found: {key}")
        self.key = key


class ConfigLoadError(OpsWatchError):
    """The worklist, recipients or credentials could not be loaded."""


class DecryptionError(OpsWatchError):
    """An at-rest encrypted secret could not be decrypted."""


class ProbeError(OpsWatchError):
    """A single item could not be probed."""


class DNSFailure(ProbeError):
    pass


class ConnectFailure(ProbeError):
    pass


class HandshakeFailure(ProbeError):
    pass


class NoCertificate(ProbeError):
    pass


class RPCError(ProbeError):
    """The chain node answered with an error or could not be reached."""


class MalformedResponse(ProbeError):
    """The chain node answered with something that is not a usable result."""


class PersistenceError(OpsWatchError):
    """Wallet state could not be read or written."""


# Public name for callers of the wallet state store API.
StorageError = PersistenceError


class DeliveryError(OpsWatchError):
    """A notification could not be delivered on one channel."""


class WebhookError(DeliveryError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmailDeliveryError(DeliveryError):
    def __init__(self, recipient: str, message: str) -> None:
        super().__init__(f"{recipient}: {message}")
        self.recipient = recipient
