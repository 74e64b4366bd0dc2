"""Last-known wallet balances and the delta against the previous run."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import psycopg2
import structlog
from psycopg2.extensions import connection as Connection
from psycopg2.extras import RealDictCursor

from opswatch.database.postgres import PostgresClient
from opswatch.errors import PersistenceError

logger = structlog.get_logger(__name__)

DEFAULT_TABLE = "swan_chain_data"


@dataclass(frozen=True)
class WalletState:
    address: str
    network: str
    balance: Decimal
    balance_change: Decimal
    updated_at: datetime | None


class WalletStateStore:
    """One row per (wallet_address, network_env); rows are never deleted.

    The table defaults to the deployment's existing ``swan_chain_data`` so
    balances carry over between releases. Ticks only write through ``upsert``;
    ``get`` is the read side of the same API, used by operators inspecting a
    wallet.
    """

    def __init__(self, postgres_client: PostgresClient, table: str = DEFAULT_TABLE) -> None:
        self.postgres = postgres_client
        self.table = table

    def ensure_schema(self) -> None:
        """Create the table when missing; an existing table is left untouched."""
        self._execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
              id SERIAL PRIMARY KEY,
              wallet_address TEXT NOT NULL,
              balance NUMERIC(78, 18) NOT NULL DEFAULT 0,
              balance_change NUMERIC(78, 18) NOT NULL DEFAULT 0,
              explorer TEXT,
              network_env TEXT NOT NULL,
              update_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              UNIQUE (wallet_address, network_env)
            )
            """
        )

    def get(self, address: str, network: str) -> WalletState | None:
        try:
            with self.postgres.connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"SELECT wallet_address, balance, balance_change, network_env, update_at "
                        f"FROM {self.table} WHERE wallet_address = %s AND network_env = %s",
                        (address, network),
                    )
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise PersistenceError(f"wallet state lookup failed: {e}") from e
        if row is None:
            return None
        return WalletState(
            address=row["wallet_address"],
            network=row["network_env"],
            balance=Decimal(row["balance"]),
            balance_change=Decimal(row["balance_change"]),
            updated_at=row["update_at"],
        )

    def upsert(self, address: str, network: str, new_balance: Decimal) -> Decimal:
        """
        Store ``new_balance`` and return the change against the stored balance.

        A missing row counts as a zero baseline. The read and the write run in
        one transaction with the row locked, so the returned delta always
        matches the balance it replaced.
        """
        now = datetime.now(timezone.utc)
        try:
            with self.postgres.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(
                            f"SELECT balance FROM {self.table} "
                            f"WHERE wallet_address = %s AND network_env = %s FOR UPDATE",
                            (address, network),
                        )
                        row = cur.fetchone()
                        previous = Decimal(row[0]) if row is not None else Decimal(0)
                        change = new_balance - previous

                        cur.execute(
                            f"UPDATE {self.table} SET balance = %s, balance_change = %s, update_at = %s "
                            f"WHERE wallet_address = %s AND network_env = %s",
                            (new_balance, change, now, address, network),
                        )
                        if cur.rowcount == 0:
                            cur.execute(
                                f"INSERT INTO {self.table} "
                                f"(wallet_address, balance, balance_change, network_env, update_at) "
                                f"VALUES (%s, %s, %s, %s, %s)",
                                (address, new_balance, change, network, now),
                            )
                    conn.commit()
                except psycopg2.Error:
                    _rollback(conn)
                    raise
        except psycopg2.Error as e:
            raise PersistenceError(f"wallet state upsert failed for {address}: {e}") from e

        logger.debug("Wallet state stored", address=address, network=network, balance=str(new_balance), change=str(change))
        return change

    def _execute(self, sql: str) -> None:
        try:
            with self.postgres.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql)
                    conn.commit()
                except psycopg2.Error:
                    _rollback(conn)
                    raise
        except psycopg2.Error as e:
            raise PersistenceError(f"schema bootstrap failed: {e}") from e


def _rollback(conn: Connection) -> None:
    # A connection dropped by the server cannot roll back; the pool discards it.
    if conn.closed:
        return
    try:
        conn.rollback()
    except psycopg2.Error as e:
        logger.warning("Rollback failed", error=str(e))
