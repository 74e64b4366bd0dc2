from __future__ import annotations

import asyncio
import socket
import ssl
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from opswatch.errors import ConnectFailure, DNSFailure, ProbeError
from opswatch.probes.certificate import CertificateProbe, format_duration, is_expiring, parse_not_after, tls_host_port


def _self_signed(not_after: datetime) -> tuple[bytes, bytes, bytes]:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem, cert.public_bytes(serialization.Encoding.DER)


def test_format_duration_days_hours_minutes() -> None:
    d = timedelta(days=5, hours=3, minutes=30)
    assert format_duration(d) == "5 days 3 hours 30 minutes"


def test_format_duration_rounds_to_minute() -> None:
    assert format_duration(timedelta(hours=1, seconds=29)) == "0 days 1 hours 0 minutes"
    assert format_duration(timedelta(hours=1, seconds=31)) == "0 days 1 hours 1 minutes"
    assert format_duration(timedelta(hours=-25)) == "-1 days 1 hours 0 minutes"


def test_alert_window_boundary_is_exclusive() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    window = timedelta(hours=48)
    assert is_expiring(now + window, now, window) is False
    assert is_expiring(now + window - timedelta(seconds=1), now, window) is True
    assert is_expiring(now + window + timedelta(seconds=1), now, window) is False
    assert is_expiring(now - timedelta(days=1), now, window) is True


@pytest.mark.parametrize(
    ("domain", "expected"),
    [
        ("example.com", ("example.com", 443)),
        ("https://swanchain.io/", ("swanchain.io", 443)),
        ("https://example.com:8443/path", ("example.com", 8443)),
        ("example.com:444", ("example.com", 444)),
    ],
)
def test_tls_host_port(domain: str, expected: tuple[str, int]) -> None:
    assert tls_host_port(domain) == expected


def test_tls_host_port_rejects_garbage() -> None:
    with pytest.raises(DNSFailure):
        tls_host_port("https://")
    with pytest.raises(ProbeError):
        tls_host_port("example.com:notaport")


def test_parse_not_after_reads_der() -> None:
    not_after = datetime(2027, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    _, _, der = _self_signed(not_after)
    assert parse_not_after(der) == not_after


@pytest.mark.asyncio
async def test_probe_reads_expiry_from_self_signed_server(tmp_path: Path) -> None:
    not_after = datetime(2030, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    cert_pem, key_pem, _ = _self_signed(not_after)
    cert_file = tmp_path / "cert.pem"
    key_file = tmp_path / "key.pem"
    cert_file.write_bytes(cert_pem)
    key_file.write_bytes(key_pem)

    server_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    server_ctx.load_cert_chain(str(cert_file), str(key_file))

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await reader.read(1)
        except (OSError, ssl.SSLError):
            pass
        writer.close()

    server = await asyncio.start_server(handle, host="127.0.0.1", port=0, ssl=server_ctx)
    port = server.sockets[0].getsockname()[1]
    try:
        probe = CertificateProbe(timeout_seconds=5)
        got = await probe.check_expiry(f"https://127.0.0.1:{port}/")
    finally:
        server.close()
        await server.wait_closed()

    assert got == not_after


@pytest.mark.asyncio
async def test_probe_connection_refused_is_connect_failure() -> None:
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    with pytest.raises(ConnectFailure):
        await CertificateProbe(timeout_seconds=2).check_expiry(f"127.0.0.1:{port}")


@pytest.mark.asyncio
async def test_probe_invalid_hostname_is_dns_failure() -> None:
    with pytest.raises(DNSFailure):
        await CertificateProbe(timeout_seconds=2).check_expiry("bad..example.com")
