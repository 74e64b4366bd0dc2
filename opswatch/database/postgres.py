"""PostgreSQL connection pool shared by the config and wallet stores."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg2
import structlog
from psycopg2.extensions import connection as Connection
from psycopg2.pool import ThreadedConnectionPool

from opswatch.config import MonitoringConfig

logger = structlog.get_logger(__name__)


class PostgresClient:
    """PostgreSQL client with connection pooling."""

    def __init__(self, config: MonitoringConfig) -> None:
        self.config = config
        self.pool: ThreadedConnectionPool | None = None

    def connect(self) -> None:
        """Create the connection pool; raises ConnectionError when unreachable."""
        try:
            self.pool = ThreadedConnectionPool(
                minconn=self.config.db_min_conn,
                maxconn=self.config.db_max_conn,
                dsn=self.config.db_dsn,
            )
        except psycopg2.Error as e:
            raise ConnectionError(f"Failed to create connection pool: {e}") from e
        logger.info("Connected to PostgreSQL", host=self.config.db_host, database=self.config.db_name)

    def close(self) -> None:
        if self.pool:
            self.pool.closeall()
            self.pool = None

    def get_connection(self) -> Connection:
        if not self.pool:
            raise RuntimeError("Connection pool not initialized. Call connect() first.")
        return self.pool.getconn()

    def put_connection(self, conn: Connection) -> None:
        if self.pool:
            self.pool.putconn(conn)

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Borrow a pooled connection for the duration of the block."""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.put_connection(conn)
