"""Postgres-backed store (asyncpg)."""

import json
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Optional

import asyncpg

from .base import Store

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS billing_records (
    kind        TEXT NOT NULL,
    id          TEXT NOT NULL,
    fields      JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at  TIMESTAMPTZ DEFAULT NOW(),
    updated_at  TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (kind, id)
);

CREATE TABLE IF NOT EXISTS processed_webhook_events (
    event_key     TEXT PRIMARY KEY,
    event         TEXT NOT NULL,
    processed_at  TIMESTAMPTZ DEFAULT NOW()
);
"""


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Cannot serialise {type(value).__name__}")


def encode_fields(fields: dict[str, Any]) -> str:
    """Serialise record fields for a JSONB column."""
    return json.dumps(fields, default=_json_default)


class PostgresStore(Store):
    def __init__(self, database_url: str, min_size: int = 1, max_size: int = 5) -> None:
        self._dsn = database_url.replace("postgresql+asyncpg://", "postgresql://")
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None
        # Connection bound by an open transaction() in the current task
        self._conn: ContextVar[Optional[asyncpg.Connection]] = ContextVar("billing_store_conn", default=None)

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, min_size=self._min_size, max_size=self._max_size)
            async with self._pool.acquire() as conn:
                await conn.execute(_SCHEMA_SQL)
            logger.info("Billing DB pool ready")
        return self._pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = self._conn.get()
        if conn is not None:
            yield conn
            return
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            yield conn

    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        async with self._connection() as conn:
            raw = await conn.fetchval(
                "SELECT fields FROM billing_records WHERE kind = $1 AND id = $2", kind, record_id
            )
        return json.loads(raw) if raw is not None else None

    async def upsert(self, kind: str, record_id: str, fields: dict[str, Any]) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO billing_records (kind, id, fields) VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (kind, id)
                DO UPDATE SET fields = billing_records.fields || EXCLUDED.fields, updated_at = NOW()
                """,
                kind, record_id, encode_fields(fields),
            )

    async def insert_once(self, kind: str, record_id: str, fields: dict[str, Any]) -> bool:
        async with self._connection() as conn:
            inserted = await conn.fetchval(
                """
                INSERT INTO billing_records (kind, id, fields) VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (kind, id) DO NOTHING
                RETURNING id
                """,
                kind, record_id, encode_fields(fields),
            )
        return inserted is not None

    async def has_processed(self, event_key: str) -> bool:
        async with self._connection() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM processed_webhook_events WHERE event_key = $1", event_key
            )
        return found is not None

    async def mark_processed(self, event_key: str, event: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO processed_webhook_events (event_key, event) VALUES ($1, $2)
                ON CONFLICT (event_key) DO NOTHING
                """,
                event_key, event,
            )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                token = self._conn.set(conn)
                try:
                    yield
                finally:
                    self._conn.reset(token)

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
