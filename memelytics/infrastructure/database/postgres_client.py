"""Local PostgreSQL access for development without a Supabase project.

Enabled with USE_LOCAL_DB=1; the schema lives in ``schema.sql`` beside this
module.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


class PostgresClient:
    """Pooled connections handing out dict rows."""

    def __init__(self) -> None:
        self.enabled = os.getenv("USE_LOCAL_DB", "0") == "1"
        self._pool: Any = None
        if not self.enabled:
            return
        try:
            self._pool = pool.SimpleConnectionPool(
                minconn=1,
                maxconn=int(os.getenv("POSTGRES_POOL_SIZE", "10")),
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "memelytics"),
                user=os.getenv("POSTGRES_USER", "memelytics"),
                password=os.getenv("POSTGRES_PASSWORD", "memelytics_dev_password"),
            )
        except psycopg2.Error as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc

    @contextmanager
    def cursor(self) -> Generator[Any, None, None]:
        """Cursor inside a transaction: committed on success, rolled back on error."""
        if not self.enabled or self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")
        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def fetch_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        with self.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
            return dict(row) if row else None

    def fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.cursor() as cur:
            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]

    def insert_returning(self, query: str, params: tuple = ()) -> dict[str, Any]:
        row = self.fetch_one(query, params)
        if row is None:
            raise RuntimeError("Insert query did not return a row")
        return row

    def apply_schema(self) -> None:
        with self.cursor() as cur:
            cur.execute(SCHEMA_PATH.read_text(encoding="utf-8"))

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()


_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
