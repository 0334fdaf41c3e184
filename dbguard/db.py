"""Async PostgreSQL connection pool with per-lease session setup.

Each lease is exclusive to one request attempt. Session state applied on
lease (read-only flag, statement timeout) is cleared by the pool's reset
hook before the connection is handed out again.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from dbguard.config import GatewayConfig

logger = logging.getLogger(__name__)


async def reset_session(conn: psycopg.AsyncConnection) -> None:
    """Clear session settings on a connection returned to the pool."""
    await conn.execute("RESET ALL")


class DatabasePool:
    """Manages the bounded async connection pool.

    - Connection health checks before checkout
    - Session reset on return (no read-only flag leaks between requests)
    - Read-only marking and statement timeout per lease
    """

    def __init__(self, config: GatewayConfig):
        self._config = config
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def open(self, wait: bool = False):
        """Create and open the pool."""
        cfg = self._config
        self._pool = AsyncConnectionPool(
            conninfo=cfg.conninfo,
            min_size=cfg.pool_min_size,
            max_size=cfg.pool_max_size,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            check=AsyncConnectionPool.check_connection,
            reset=reset_session,
            timeout=cfg.pool_acquire_timeout,
            max_lifetime=cfg.pool_max_lifetime,
            max_idle=cfg.pool_max_idle,
            reconnect_timeout=cfg.connect_timeout,
            name="dbguard",
        )
        await self._pool.open(wait=wait)
        logger.info(
            f"Connection pool initialized (max_size={cfg.pool_max_size}, "
            f"mode={cfg.security_mode.value})"
        )

    async def close(self):
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Connection pool closed")

    @asynccontextmanager
    async def lease(
        self, read_only: bool = False
    ) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection for one attempt.

        Args:
            read_only: Mark the session READ ONLY for the lease's lifetime.
        """
        if not self._pool:
            raise RuntimeError("Pool not initialized. Call open() first.")

        async with self._pool.connection() as conn:
            if read_only:
                await conn.execute("SET SESSION CHARACTERISTICS AS TRANSACTION READ ONLY")
            await conn.execute(
                "SELECT set_config('statement_timeout', %s, false)",
                (f"{self._config.query_timeout * 1000}",),
            )
            yield conn
