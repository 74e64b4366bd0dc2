"""Database access."""

from .postgres import PostgresClient

__all__ = ["PostgresClient"]
