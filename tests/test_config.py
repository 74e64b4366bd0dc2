from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from opswatch.config import MonitoringConfig, load_config
from opswatch.errors import DecryptionError
from opswatch.secrets import decrypt_secret, encrypt_secret

KEY = "0123456789abcdef0123456789abcdef"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("INFO_DB_HOST", "INFO_DB_PORT", "ADMIN_EMAIL", "CHAIN_HEALTH_ENABLED", "CERT_ALERT_WINDOW_HOURS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path: Path) -> None:
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config.cert_alert_window_hours == 48.0
    assert config.cert_schedule_cron == "0 1 * * *"
    assert config.wallet_schedule_cron == "0 8 * * *"
    assert config.l1.network_env == "sepolia"
    assert config.l2.network_env == "swan"
    assert config.smtp_port == 587
    assert config.wallet_state_table == "swan_chain_data"
    assert "environment" not in MonitoringConfig.model_fields


def test_wallet_state_table_must_be_a_plain_identifier() -> None:
    assert MonitoringConfig(wallet_state_table="wallet_balances").wallet_state_table == "wallet_balances"
    with pytest.raises(ValidationError):
        MonitoringConfig(wallet_state_table="swan_chain_data; DROP TABLE info")


def test_yaml_then_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "opswatch.yaml"
    path.write_text(
        "db_host: db.internal\n"
        "db_port: 6543\n"
        "cert_alert_window_hours: 72\n"
        "l2:\n"
        "  rpc_key: mainnet-rpc\n"
        "  explorer_key: mainnet-block-explorer\n"
        "  network_env: mainnet\n"
        "  display_name: Swan Mainnet\n"
    )
    monkeypatch.setenv("INFO_DB_HOST", "db.override")
    monkeypatch.setenv("CHAIN_HEALTH_ENABLED", "yes")

    config = load_config(str(path))

    assert config.db_host == "db.override"
    assert config.db_port == 6543
    assert config.cert_alert_window_hours == 72
    assert config.chain_health_enabled is True
    assert config.l2.rpc_key == "mainnet-rpc"
    assert "host=db.override port=6543" in config.db_dsn


def test_decrypt_secret_round_trip() -> None:
    token = encrypt_secret("correct horse", KEY, os.urandom(12))
    assert decrypt_secret(token.rstrip("="), KEY) == "correct horse"


@pytest.mark.parametrize(
    ("token", "key"),
    [
        ("anything", "short"),
        ("!!!not base64!!!", KEY),
        ("AAAA", KEY),
    ],
)
def test_decrypt_secret_rejects_bad_input(token: str, key: str) -> None:
    with pytest.raises(DecryptionError):
        decrypt_secret(token, key)


def test_decrypt_secret_wrong_key() -> None:
    token = encrypt_secret("correct horse", KEY, os.urandom(12))
    with pytest.raises(DecryptionError):
        decrypt_secret(token, "fedcba9876543210fedcba9876543210")
