"""
PostgreSQL connection pool for the graph and job stores.

Both stores accept anything with execute/fetch/fetchrow/fetchval, so a pooled
``Database`` and a transaction-bound asyncpg connection are interchangeable.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg

from config import settings

logger = logging.getLogger(__name__)

GRAPH_TABLES = ("papers", "nodes", "edges", "sources")


class Database:
    """
    Async PostgreSQL connection manager.

    Usage:
        db = Database()
        await db.connect()

        async with db.transaction() as conn:
            await conn.execute("INSERT INTO nodes ...")

        await db.disconnect()
    """

    def __init__(self, dsn: Optional[str] = None, health_cache_ttl: Optional[float] = None):
        self.dsn = dsn or settings.database_url
        self._pool: Optional[asyncpg.Pool] = None
        self._health_cache_ttl = settings.db_health_cache_ttl if health_cache_ttl is None else health_cache_ttl
        self._health_cache = {"checked_at": 0.0, "db_ok": False, "schema_ok": False}
        self._health_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raise if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def connect(self) -> None:
        """Create the pool using the configured sizes and command timeout."""
        if self._pool is not None:
            logger.warning("Database already connected")
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
                max_inactive_connection_lifetime=300.0,
                # pgbouncer in transaction mode cannot use prepared statements
                statement_cache_size=0,
            )
            self._health_cache["checked_at"] = 0.0
            logger.info(
                f"Database connected (pool: {settings.db_pool_min_size}-{settings.db_pool_max_size})"
            )
        except Exception as e:
            # DSN is not logged
            logger.error(f"Failed to connect to database: {type(e).__name__}: {e}")
            raise RuntimeError("Database connection failed") from e

    async def disconnect(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database disconnected")

    @asynccontextmanager
    async def acquire(self):
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self):
        """
        Acquire a connection and start a transaction.

        The yielded connection is handed to a store in place of this object,
        so every write made through it commits or rolls back together.
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return the status tag, e.g. ``DELETE 3``."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def get_health_snapshot(self, force_refresh: bool = False) -> dict[str, bool]:
        """
        Reachability plus presence of the graph tables, cached for a short TTL.

        ``/health`` may be polled every few seconds by the hosting platform.
        """
        if not force_refresh and time.monotonic() - self._health_cache["checked_at"] < self._health_cache_ttl:
            return {"db_ok": self._health_cache["db_ok"], "schema_ok": self._health_cache["schema_ok"]}

        async with self._health_lock:
            now = time.monotonic()
            if not force_refresh and now - self._health_cache["checked_at"] < self._health_cache_ttl:
                return {"db_ok": self._health_cache["db_ok"], "schema_ok": self._health_cache["schema_ok"]}

            db_ok = schema_ok = False
            if self._pool is not None:
                try:
                    async with self.acquire() as conn:
                        row = await conn.fetchrow(
                            "SELECT 1 AS db_ok, "
                            "bool_and(to_regclass('public.' || t) IS NOT NULL) AS schema_ok "
                            "FROM unnest($1::text[]) AS t",
                            list(GRAPH_TABLES),
                        )
                    db_ok = bool(row and row["db_ok"] == 1)
                    schema_ok = bool(row and row["schema_ok"])
                except Exception as e:
                    logger.error(f"Database health check failed: {type(e).__name__}")

            self._health_cache = {"checked_at": now, "db_ok": db_ok, "schema_ok": schema_ok}
            return {"db_ok": db_ok, "schema_ok": schema_ok}

    async def health_check(self) -> bool:
        """Check if database is accessible."""
        return (await self.get_health_snapshot())["db_ok"]


# Global database instance
db = Database()


async def init_db() -> None:
    """Initialize database connection (call on startup)."""
    await db.connect()
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connection (call on shutdown)."""
    await db.disconnect()
    logger.info("Database closed")
