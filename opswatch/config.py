"""Configuration management for the monitoring service."""

import os
from functools import lru_cache
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class NetworkKeys(BaseModel):
    """Config-table keys and labels for one wallet network."""
    rpc_key: str = Field(description="Config-table key holding the JSON-RPC endpoint")
    explorer_key: str = Field(description="Config-table key holding the block explorer URL")
    network_env: str = Field(description="Label stored in the wallet state table")
    display_name: str = Field(description="Human-readable network name for digests")


class MonitoringConfig(BaseModel):
    """Main configuration for the monitoring service."""

    log_level: str = Field(default="INFO", description="Logging level")

    # Database (config table + wallet state table)
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_name: str = Field(default="info", description="PostgreSQL database")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="", description="PostgreSQL password")
    db_sslmode: str = Field(default="disable", description="libpq sslmode")
    db_min_conn: int = Field(default=1, description="Minimum pooled connections")
    db_max_conn: int = Field(default=4, description="Maximum pooled connections")
    wallet_state_table: str = Field(
        default="swan_chain_data",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Table holding the last balance per wallet and network",
    )

    # Credentials; empty values fall back to the config table
    admin_email: str = Field(default="", description="Sender address for alert emails")
    admin_email_password: str = Field(default="", description="Sender password")
    decrypt_key: str = Field(default="", description="AES key for at-rest encrypted secrets")

    # SMTP submission
    smtp_host: str = Field(default="smtp.office365.com", description="SMTP submission host")
    smtp_port: int = Field(default=587, description="SMTP submission port (STARTTLS)")
    smtp_timeout_seconds: float = Field(default=30.0, description="SMTP socket timeout")

    # Probe behaviour
    cert_alert_window_hours: float = Field(default=48.0, description="Alert when a certificate expires sooner than this")
    probe_timeout_seconds: float = Field(default=15.0, description="Per-probe network timeout")

    # Scheduling settings
    cert_schedule_cron: str = Field(default="0 1 * * *", description="Cron expression for certificate checks")
    wallet_schedule_cron: str = Field(default="0 8 * * *", description="Cron expression for wallet balance checks")
    chain_health_enabled: bool = Field(default=False, description="Enable the chain health poll")
    chain_health_interval_seconds: int = Field(default=300, description="Chain health poll interval")
    run_on_startup: bool = Field(default=True, description="Run every family once at start-up")

    # Config-table keys
    webhook_key: str = Field(default="teams-webhook", description="Config-table key of the chat webhook URL")
    admin_email_key: str = Field(default="admin-email", description="Config-table key of the sender address")
    admin_password_key: str = Field(default="admin-email-psw", description="Config-table key of the sender password")
    l1: NetworkKeys = Field(
        default_factory=lambda: NetworkKeys(
            rpc_key="sepolia-rpc",
            explorer_key="sepolia-block-explorer",
            network_env="sepolia",
            display_name="Sepolia",
        )
    )
    l2: NetworkKeys = Field(
        default_factory=lambda: NetworkKeys(
            rpc_key="saturn-rpc",
            explorer_key="saturn-block-explorer",
            network_env="swan",
            display_name="Swan Chain",
        )
    )

    # Chain health
    chain_health_block_window: int = Field(default=10, description="Blocks inspected behind the head")
    chain_health_min_transactions: int = Field(default=5, description="Minimum transactions in the window")

    # HTTP surface
    http_host: str = Field(default="0.0.0.0", description="Bind address for the status API")
    http_port: int = Field(default=8000, description="Port for the status API")

    @property
    def db_dsn(self) -> str:
        return (
            f"host={self.db_host} "
            f"port={self.db_port} "
            f"dbname={self.db_name} "
            f"user={self.db_user} "
            f"password={self.db_password} "
            f"sslmode={self.db_sslmode}"
        )


_ENV_OVERRIDES = {
    "log_level": "LOG_LEVEL",
    "db_host": "INFO_DB_HOST",
    "db_port": "INFO_DB_PORT",
    "db_name": "INFO_DB_NAME",
    "db_user": "INFO_DB_USERNAME",
    "db_password": "INFO_DB_PASSWORD",
    "db_sslmode": "INFO_DB_SSLMODE",
    "admin_email": "ADMIN_EMAIL",
    "admin_email_password": "ADMIN_EMAIL_PASSWORD",
    "decrypt_key": "DECRYPT_KEY",
    "smtp_host": "SMTP_HOST",
    "smtp_port": "SMTP_PORT",
    "cert_alert_window_hours": "CERT_ALERT_WINDOW_HOURS",
    "cert_schedule_cron": "CERT_SCHEDULE_CRON",
    "wallet_schedule_cron": "WALLET_SCHEDULE_CRON",
    "chain_health_enabled": "CHAIN_HEALTH_ENABLED",
    "chain_health_interval_seconds": "CHAIN_HEALTH_INTERVAL_SECONDS",
    "run_on_startup": "RUN_ON_STARTUP",
    "http_port": "PORT",
}

_INT_KEYS = {"db_port", "smtp_port", "chain_health_interval_seconds", "http_port"}
_FLOAT_KEYS = {"cert_alert_window_hours"}
_BOOL_KEYS = {"chain_health_enabled", "run_on_startup"}


def load_config(config_path: Optional[str] = None) -> MonitoringConfig:
    """Load configuration from file, then environment variables."""
    if config_path is None:
        config_path = os.getenv("OPSWATCH_CONFIG", "config/opswatch.yaml")

    config_data = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    for key, env_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None:
            continue
        if key in _INT_KEYS:
            value = int(value)
        elif key in _FLOAT_KEYS:
            value = float(value)
        elif key in _BOOL_KEYS:
            value = value.lower() in ("true", "1", "yes")
        config_data[key] = value

    return MonitoringConfig(**config_data)


@lru_cache(maxsize=1)
def get_config() -> MonitoringConfig:
    """Get the process-wide configuration instance."""
    return load_config()
