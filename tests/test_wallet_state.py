from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal

import psycopg2
import pytest
from psycopg2.pool import PoolError

from opswatch.errors import PersistenceError
from opswatch.store import StorageError
from opswatch.store.wallet_state import WalletStateStore


class FakeCursor:
    """Understands the handful of statements WalletStateStore issues."""

    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.rowcount = -1
        self._result: list = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, sql: str, params: tuple = ()) -> None:
        self.conn.statements.append(" ".join(sql.split()))
        if self.conn.fail_on and self.conn.fail_on in sql:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        rows = self.conn.pending
        stmt = sql.strip()
        if stmt.startswith("SELECT balance FROM"):
            address, network = params
            row = rows.get((address, network))
            self._result = [(row["balance"],)] if row else []
        elif stmt.startswith("SELECT wallet_address"):
            address, network = params
            row = rows.get((address, network))
            self._result = [dict(row, wallet_address=address, network_env=network)] if row else []
        elif stmt.startswith("UPDATE"):
            balance, change, updated_at, address, network = params
            if (address, network) in rows:
                rows[(address, network)] = {"balance": balance, "balance_change": change, "update_at": updated_at}
                self.rowcount = 1
            else:
                self.rowcount = 0
        elif stmt.startswith("INSERT"):
            address, balance, change, network, updated_at = params
            rows[(address, network)] = {"balance": balance, "balance_change": change, "update_at": updated_at}
            self.rowcount = 1
        elif stmt.startswith("CREATE TABLE"):
            self.rowcount = 0
        else:
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchone(self):
        return self._result[0] if self._result else None


class FakeConnection:
    def __init__(self) -> None:
        self.committed: dict = {}
        self.pending: dict = {}
        self.statements: list[str] = []
        self.fail_on: str | None = None
        self.rollbacks = 0
        self.closed = 0
        self.rollback_error: Exception | None = None

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.committed = {k: dict(v) for k, v in self.pending.items()}

    def rollback(self) -> None:
        self.rollbacks += 1
        if self.rollback_error is not None:
            raise self.rollback_error
        self.pending = {k: dict(v) for k, v in self.committed.items()}


class FakePostgres:
    def __init__(self) -> None:
        self.conn = FakeConnection()

    @contextmanager
    def connection(self):
        yield self.conn


def test_first_upsert_uses_zero_baseline() -> None:
    pg = FakePostgres()
    store = WalletStateStore(pg)

    change = store.upsert("0xabc", "sepolia", Decimal("1.5"))

    assert change == Decimal("1.5")
    assert pg.conn.committed[("0xabc", "sepolia")]["balance"] == Decimal("1.5")
    assert any(s.startswith("INSERT INTO swan_chain_data") for s in pg.conn.statements)
    assert "FOR UPDATE" in pg.conn.statements[0]


def test_delta_chain_is_sequentially_consistent() -> None:
    pg = FakePostgres()
    store = WalletStateStore(pg)

    assert store.upsert("0xabc", "swan", Decimal("10")) == Decimal("10")
    assert store.upsert("0xabc", "swan", Decimal("7.25")) == Decimal("-2.75")
    assert store.upsert("0xabc", "swan", Decimal("9")) == Decimal("1.75")

    state = store.get("0xabc", "swan")
    assert state is not None
    assert state.balance == Decimal("9")
    assert state.balance_change == Decimal("1.75")


def test_networks_are_tracked_separately() -> None:
    pg = FakePostgres()
    store = WalletStateStore(pg)

    store.upsert("0xabc", "sepolia", Decimal("3"))
    assert store.upsert("0xabc", "swan", Decimal("5")) == Decimal("5")
    assert store.upsert("0xabc", "sepolia", Decimal("4")) == Decimal("1")


def test_storage_error_rolls_back_and_raises() -> None:
    pg = FakePostgres()
    store = WalletStateStore(pg)
    store.upsert("0xabc", "swan", Decimal("2"))

    pg.conn.fail_on = "UPDATE"
    with pytest.raises(PersistenceError):
        store.upsert("0xabc", "swan", Decimal("100"))

    assert pg.conn.rollbacks == 1
    assert pg.conn.committed[("0xabc", "swan")]["balance"] == Decimal("2")


def test_get_missing_row_is_none() -> None:
    assert WalletStateStore(FakePostgres()).get("0xnone", "swan") is None


def test_ensure_schema_creates_unique_pair() -> None:
    pg = FakePostgres()
    WalletStateStore(pg).ensure_schema()
    assert pg.conn.statements[0].startswith("CREATE TABLE IF NOT EXISTS swan_chain_data")
    assert "UNIQUE (wallet_address, network_env)" in pg.conn.statements[0]


def test_dropped_connection_with_failing_rollback_is_storage_error() -> None:
    pg = FakePostgres()
    pg.conn.fail_on = "SELECT balance"
    pg.conn.rollback_error = psycopg2.InterfaceError("connection already closed")

    with pytest.raises(StorageError) as exc:
        WalletStateStore(pg).upsert("0xabc", "swan", Decimal(1))

    assert isinstance(exc.value.__cause__, psycopg2.OperationalError)
    assert pg.conn.rollbacks == 1


def test_closed_connection_skips_rollback() -> None:
    pg = FakePostgres()
    pg.conn.fail_on = "SELECT balance"
    pg.conn.closed = 2

    with pytest.raises(PersistenceError):
        WalletStateStore(pg).upsert("0xabc", "swan", Decimal(1))

    assert pg.conn.rollbacks == 0


def test_exhausted_pool_is_storage_error() -> None:
    class ExhaustedPostgres:
        @contextmanager
        def connection(self):
            raise PoolError("connection pool exhausted")
            yield

    with pytest.raises(PersistenceError):
        WalletStateStore(ExhaustedPostgres()).upsert("0xabc", "swan", Decimal(1))


def test_table_name_is_configurable() -> None:
    pg = FakePostgres()
    store = WalletStateStore(pg, table="wallet_balances")

    store.upsert("0xabc", "swan", Decimal(1))

    assert pg.conn.statements[0].startswith("SELECT balance FROM wallet_balances")
    assert pg.conn.statements[-1].startswith("INSERT INTO wallet_balances")
