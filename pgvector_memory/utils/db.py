"""db.py — PostgreSQL connection provider

Owns a single :class:`psycopg_pool.AsyncConnectionPool` per configuration
and lends one connection per operation.  Every pooled connection runs in
autocommit mode, has the pgvector types registered and decodes JSONB with
*orjson*.

Driver failures are translated here, once, into
:class:`~pgvector_memory.utils.exceptions.DatabaseError` (original kept as
``__cause__``, SQLSTATE in ``context``).  Nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import orjson
import psycopg
from pgvector.psycopg import register_vector_async
from psycopg.rows import dict_row
from psycopg.types.json import set_json_loads
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from pgvector_memory.config.settings import PostgresConfig
from pgvector_memory.utils.exceptions import DatabaseError
from pgvector_memory.utils.metrics import LAT_DB_QUERY, MET_ERRORS_TOTAL, MET_POOL_TIMEOUTS

__all__ = [
    "ConnectionProvider",
]

log = logging.getLogger(__name__)


class ConnectionProvider:
    """Lazily opened async connection pool with error translation."""

    def __init__(self, config: PostgresConfig, *, logger: Optional[logging.Logger] = None) -> None:
        self._config = config
        self._log = logger or log
        self._conninfo = config.connection_string.get_secret_value()
        self._pool: Optional[AsyncConnectionPool] = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    #                           LIFECYCLE                                #
    # ------------------------------------------------------------------ #
    async def open(self) -> None:
        """Create and open the pool (idempotent)."""
        await self._ensure_open()

    async def close(self) -> None:
        async with self._lock:
            if self._pool is not None:
                await self._pool.close()
                self._pool = None
                self._log.debug("Connection pool closed")

    async def __aenter__(self) -> "ConnectionProvider":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _ensure_open(self) -> AsyncConnectionPool:
        if self._pool is not None:
            return self._pool
        async with self._lock:
            if self._pool is not None:
                return self._pool
            try:
                if self._config.create_vector_extension:
                    await self._create_extension()
                pool = AsyncConnectionPool(
                    conninfo=self._conninfo,
                    min_size=self._config.pool_min_size,
                    max_size=self._config.pool_max_size,
                    timeout=self._config.pool_timeout,
                    kwargs={"autocommit": True},
                    configure=self._configure_connection,
                    open=False,
                )
                await pool.open()
            except psycopg.Error as e:
                raise self._translate(e, "Failed to open the connection pool") from e
            self._pool = pool
            self._log.info(
                "Connection pool opened (min=%d, max=%d)",
                self._config.pool_min_size,
                self._config.pool_max_size,
            )
            return pool

    async def _create_extension(self) -> None:
        async with await psycopg.AsyncConnection.connect(self._conninfo, autocommit=True) as conn:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        self._log.debug("pgvector extension ensured")

    @staticmethod
    async def _configure_connection(conn: psycopg.AsyncConnection) -> None:
        await register_vector_async(conn)
        set_json_loads(orjson.loads, conn)

    # ------------------------------------------------------------------ #
    #                         PUBLIC INTERFACE                           #
    # ------------------------------------------------------------------ #
    @asynccontextmanager
    async def cursor(self, *, transaction: bool = False) -> AsyncIterator[psycopg.AsyncCursor]:
        """Borrow a connection and yield a ``dict_row`` cursor on it.

        With ``transaction=True`` the statements issued on the cursor run
        inside a single transaction, committed on normal exit.
        """
        pool = await self._ensure_open()
        start = time.monotonic()
        try:
            async with pool.connection() as conn:
                if transaction:
                    async with conn.transaction():
                        async with conn.cursor(row_factory=dict_row) as cur:
                            yield cur
                else:
                    async with conn.cursor(row_factory=dict_row) as cur:
                        yield cur
        except PoolTimeout as e:
            MET_POOL_TIMEOUTS.inc()
            raise self._translate(e, "Timed out waiting for a pooled connection") from e
        except psycopg.Error as e:
            raise self._translate(e, "Database error") from e
        finally:
            LAT_DB_QUERY.observe(time.monotonic() - start)

    async def health_check(self) -> Dict[str, Any]:
        """Round-trip ``SELECT 1`` and report pool statistics."""
        try:
            async with self.cursor() as cur:
                await cur.execute("SELECT 1 AS ok")
                row = await cur.fetchone()
            healthy = bool(row and row["ok"] == 1)
            return {"healthy": healthy, "message": "ok", "pool_stats": self.get_stats()}
        except DatabaseError as e:
            return {"healthy": False, "message": e.message, "pool_stats": self.get_stats()}

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._pool.get_stats()) if self._pool is not None else {}

    # ------------------------------------------------------------------ #
    #                         INTERNAL HELPERS                           #
    # ------------------------------------------------------------------ #
    def _translate(self, e: psycopg.Error, message: str) -> DatabaseError:
        MET_ERRORS_TOTAL.labels(type(e).__name__, "db").inc()
        sqlstate = getattr(e, "sqlstate", None)
        self._log.debug("%s: %s (sqlstate=%s)", message, e, sqlstate)
        return DatabaseError(f"{message}: {e}", context={"sqlstate": sqlstate}, cause=e)
