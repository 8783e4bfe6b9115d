"""
Async database access helpers (raw SQL) using asyncpg.

Database owns the connection pool. The application connects it before the
broker and closes it last.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from usersync.config.database import DatabaseSettings
from usersync.shared.exceptions import StorageConnectionError, StorageError
from usersync.utility.logging_client import logger

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    username TEXT NOT NULL,
    email_address TEXT NOT NULL,
    source TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (email_address, source)
)
"""


class Database:
    """Thin wrapper around an asyncpg pool."""

    def __init__(self, settings: DatabaseSettings):
        self.settings = settings
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StorageError("Database pool is not initialized")
        return self._pool

    async def connect(self) -> None:
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.settings.dsn,
                min_size=self.settings.min_pool_size,
                max_size=self.settings.max_pool_size,
                command_timeout=self.settings.command_timeout,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise StorageConnectionError(
                "Cannot connect to database",
                details={"host": self.settings.host, "database": self.settings.database},
                original_error=e,
            ) from e
        logger.info("Database pool created", component="db")

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed", component="db")

    async def ensure_schema(self) -> None:
        await self.execute(SCHEMA)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield conn
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError("Transaction failed", original_error=e) from e

    async def fetch(self, query: str, *args: Any, conn: Optional[asyncpg.Connection] = None) -> List[Dict[str, Any]]:
        try:
            rows = await (conn or self.pool).fetch(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError("Query failed", details={"query": query.split()[0]}, original_error=e) from e
        return [dict(row) for row in rows]

    async def fetch_one(
        self, query: str, *args: Any, conn: Optional[asyncpg.Connection] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            row = await (conn or self.pool).fetchrow(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError("Query failed", details={"query": query.split()[0]}, original_error=e) from e
        return dict(row) if row is not None else None

    async def fetch_val(self, query: str, *args: Any, conn: Optional[asyncpg.Connection] = None) -> Any:
        try:
            return await (conn or self.pool).fetchval(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError("Query failed", details={"query": query.split()[0]}, original_error=e) from e

    async def execute(self, query: str, *args: Any, conn: Optional[asyncpg.Connection] = None) -> str:
        try:
            return await (conn or self.pool).execute(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise StorageError("Query failed", details={"query": query.split()[0]}, original_error=e) from e
