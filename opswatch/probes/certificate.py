from __future__ import annotations

import asyncio
import socket
import ssl
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import structlog
from OpenSSL import crypto

from opswatch.errors import ConnectFailure, DNSFailure, HandshakeFailure, NoCertificate, ProbeError

logger = structlog.get_logger(__name__)

DEFAULT_TLS_PORT = 443


@dataclass(frozen=True)
class CertificateInfo:
    domain: str
    not_after: datetime


def tls_host_port(domain: str) -> tuple[str, int]:
    """Accept either a bare hostname (optionally ``host:port``) or a URL."""
    raw = str(domain or "").strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as exc:
        raise ProbeError(f"invalid domain {domain!r}: {exc}") from exc
    host = (parts.hostname or "").strip()
    if not host:
        raise DNSFailure(f"no hostname in {domain!r}")
    return host, int(port or DEFAULT_TLS_PORT)


def parse_not_after(der: bytes) -> datetime:
    x509 = crypto.load_certificate(crypto.FILETYPE_ASN1, der)
    raw = x509.get_notAfter()
    if not raw:
        raise NoCertificate("certificate has no notAfter field")
    dt = datetime.strptime(raw.decode("ascii"), "%Y%m%d%H%M%SZ")
    return dt.replace(tzinfo=timezone.utc)


def format_duration(d: timedelta) -> str:
    """Render as ``"5 days 3 hours 30 minutes"``, rounded to the minute."""
    sign = "-" if d < timedelta(0) else ""
    total_minutes = int(abs(d).total_seconds() / 60 + 0.5)
    hours, minutes = divmod(total_minutes, 60)
    days, hours = divmod(hours, 24)
    return f"{sign}{days} days {hours} hours {minutes} minutes"


def is_expiring(not_after: datetime, now: datetime, window: timedelta) -> bool:
    """Strictly less than ``window`` left; already expired counts as expiring."""
    return not_after - now < window


def _unverified_context() -> ssl.SSLContext:
    # Expiry is read from whatever the server presents, self-signed included.
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


class CertificateProbe:
    """Reads the leaf certificate expiry with a bare TLS handshake."""

    def __init__(self, timeout_seconds: float = 15.0) -> None:
        self.timeout_seconds = max(1.0, float(timeout_seconds))

    async def check_expiry(self, domain: str) -> datetime:
        host, port = tls_host_port(domain)
        writer = None
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host=host, port=port, ssl=_unverified_context(), server_hostname=host),
                timeout=self.timeout_seconds,
            )
            sslobj = writer.get_extra_info("ssl_object")
            der = sslobj.getpeercert(binary_form=True) if sslobj else None
        except socket.gaierror as exc:
            raise DNSFailure(f"{host}: {exc}") from exc
        except UnicodeError as exc:
            # IDNA rejects empty or over-long labels before any lookup.
            raise DNSFailure(f"{host}: invalid hostname: {exc}") from exc
        except ssl.SSLError as exc:
            raise HandshakeFailure(f"{host}:{port}: {exc}") from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise ConnectFailure(f"{host}:{port}: {type(exc).__name__}: {exc}") from exc
        finally:
            if writer is not None:
                writer.close()
                try:
                    await writer.wait_closed()
                except (OSError, ssl.SSLError):
                    pass

        if not der:
            raise NoCertificate(f"{host}:{port} presented no certificate")
        try:
            not_after = parse_not_after(der)
        except crypto.Error as exc:
            raise NoCertificate(f"{host}:{port}: unreadable certificate: {exc}") from exc
        logger.debug("Certificate read", domain=domain, not_after=not_after.isoformat())
        return not_after
