from __future__ import annotations

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from opswatch.errors import DecryptionError

NONCE_SIZE = 12


def decrypt_secret(token: str, key: str) -> str:
    """
    Decrypt a config-table secret.

    The token is URL-safe base64 of ``nonce || ciphertext || tag`` sealed with
    AES-GCM under the raw bytes of ``key`` (16, 24 or 32 bytes).
    """
    key_bytes = key.encode("utf-8")
    if len(key_bytes) not in (16, 24, 32):
        raise DecryptionError(f"invalid key size: {len(key_bytes)} bytes")

    try:
        raw = base64.urlsafe_b64decode(_pad(token.strip()))
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError(f"secret is not valid base64: {exc}") from exc

    if len(raw) <= NONCE_SIZE:
        raise DecryptionError("ciphertext too short")

    nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        plain = AESGCM(key_bytes).decrypt(nonce, sealed, None)
    except InvalidTag as exc:
        raise DecryptionError("authentication tag mismatch") from exc
    return plain.decode("utf-8")


def encrypt_secret(plain: str, key: str, nonce: bytes) -> str:
    """Inverse of decrypt_secret; used to provision config-table values."""
    sealed = AESGCM(key.encode("utf-8")).encrypt(nonce, plain.encode("utf-8"), None)
    return base64.urlsafe_b64encode(nonce + sealed).decode("ascii")


def _pad(s: str) -> str:
    return s + "=" * (-len(s) % 4)
