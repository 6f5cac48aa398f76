"""PostgreSQL client for running FoodBridge against a local database.

With ``USE_LOCAL_DB=1`` the profile repository talks to a plain Postgres
instance (schema from ``sql/profiles.sql``) instead of Supabase. Row-level
security is not enforced in this mode; the connection acts as the table owner.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Generator

import psycopg2
from psycopg2 import pool
from psycopg2.extras import Json, RealDictCursor
from psycopg2.sql import Composable

logger = logging.getLogger(__name__)


class PostgresClient:
    """PostgreSQL database client with connection pooling."""

    def __init__(self) -> None:
        self.enabled = os.getenv("USE_LOCAL_DB", "0") == "1"
        self._pool: Any = None

        if self.enabled:
            try:
                self._pool = pool.SimpleConnectionPool(
                    minconn=1,
                    maxconn=int(os.getenv("POSTGRES_POOL_MAX", "10")),
                    host=os.getenv("POSTGRES_HOST", "localhost"),
                    port=int(os.getenv("POSTGRES_PORT", "5432")),
                    database=os.getenv("POSTGRES_DB", "foodbridge"),
                    user=os.getenv("POSTGRES_USER", "foodbridge"),
                    password=os.getenv("POSTGRES_PASSWORD", "foodbridge_dev_password"),
                )
            except psycopg2.Error as exc:  # pragma: no cover
                raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc
            logger.info("Local PostgreSQL pool ready")

    @contextmanager
    def get_connection(self) -> Generator[Any, None, None]:
        """Borrow a pooled connection, committing on success and rolling back on error.

        Raises:
            RuntimeError: If the local database is not enabled.
        """
        if not self.enabled or self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")

        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def get_cursor(self) -> Generator[Any, None, None]:
        with self.get_connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()

    def execute_one(self, query: str | Composable, params: tuple = ()) -> dict[str, Any] | None:
        """Run a query and return its first row, or None when it matched nothing.

        Also used for INSERT/UPDATE statements with a RETURNING clause.
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            return dict(result) if result else None

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()


def adapt_json(value: Any) -> Any:
    """Wrap dicts so psycopg2 sends them as jsonb."""
    return Json(value) if isinstance(value, dict) else value


_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    """Return the shared client when ``USE_LOCAL_DB=1``, otherwise None."""
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
