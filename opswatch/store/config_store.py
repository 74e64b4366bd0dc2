"""Read-only access to the generic ``info`` key/value table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import psycopg2
import structlog
from psycopg2.extras import RealDictCursor

from opswatch.database.postgres import PostgresClient
from opswatch.errors import ConfigLoadError, NotFound

logger = structlog.get_logger(__name__)


class Category(str, Enum):
    DOMAIN = "domain"
    EMAIL = "email"
    WALLET_L1 = "wallet-l1"
    WALLET_L2 = "wallet-l2"
    SECRET = "secret"
    ENDPOINT = "endpoint"


# Wallet rows share one ``type`` and are told apart by key prefix.
WALLET_ROW_TYPE = "wallet-address"
_WALLET_PREFIX = {
    Category.WALLET_L1: "l1",
    Category.WALLET_L2: "l2",
}


@dataclass(frozen=True)
class ConfigEntry:
    """Single row of the config table."""

    key: str
    value: str
    category: Category
    active: bool = True
    id: int | None = None
    note: str | None = None


class ConfigStore:
    """Generic lookup over the config table.

    Nothing is cached: values such as the webhook URL may be rotated between
    ticks. Storage errors surface as ConfigLoadError and are never retried here.
    """

    TABLE = "info"

    def __init__(self, postgres_client: PostgresClient) -> None:
        self.postgres = postgres_client

    def get(self, key: str) -> str:
        """Return the value stored under ``key``; raises NotFound."""
        rows = self._query(
            f"SELECT value FROM {self.TABLE} WHERE key = %s ORDER BY id LIMIT 1",
            (key,),
        )
        if not rows:
            raise NotFound(key)
        return str(rows[0]["value"])

    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        """Return the subset of ``keys`` present in the table."""
        wanted = list(keys)
        if not wanted:
            return {}
        rows = self._query(
            f"SELECT key, value FROM {self.TABLE} WHERE key = ANY(%s) ORDER BY id",
            (wanted,),
        )
        found: dict[str, str] = {}
        for row in rows:
            found.setdefault(str(row["key"]), str(row["value"]))
        return found

    def list(self, category: Category, active_only: bool = False) -> list[ConfigEntry]:
        """Entries of one category, in table order."""
        clauses = ["type = %s"]
        params: list[object] = []
        prefix = _WALLET_PREFIX.get(category)
        if prefix is not None:
            params.append(WALLET_ROW_TYPE)
            clauses.append("key ILIKE %s")
            params.append(f"{prefix}%")
        else:
            params.append(category.value)
        if active_only:
            clauses.append("is_active = true")

        rows = self._query(
            f"SELECT id, key, value, is_active, note FROM {self.TABLE} "
            f"WHERE {' AND '.join(clauses)} ORDER BY id",
            tuple(params),
        )
        entries = [
            ConfigEntry(
                key=str(row["key"]),
                value=str(row["value"]).strip(),
                category=category,
                active=bool(row["is_active"]),
                id=row["id"],
                note=row["note"],
            )
            for row in rows
        ]
        logger.debug("Loaded config entries", category=category.value, count=len(entries))
        return entries

    def _query(self, sql: str, params: tuple) -> list[dict]:
        try:
            with self.postgres.connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(sql, params)
                    return list(cur.fetchall())
        except psycopg2.Error as e:
            raise ConfigLoadError(f"config table query failed: {e}") from e
