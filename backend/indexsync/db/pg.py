"""Direct asyncpg access to the primary store for bulk reads.

The ORM session covers the service's own tables; index pulls go through this
pool because they are large raw SQL reads that must be cancellable on the
server: each query remembers the backend pid of its connection, and cancelling
it runs ``pg_cancel_backend`` over a short-lived connection of its own, so a
pool held by the very queries being stopped cannot delay the cancel.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import asyncpg

from indexsync.core.config import settings
from indexsync.core.exceptions import TransientStoreError
from indexsync.core.logging import logger
from indexsync.platform.concurrency.cancellable import CancellableQuery

_TRANSIENT_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.exceptions.QueryCanceledError,
    asyncpg.exceptions.TooManyConnectionsError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)

# Cancel connections must not wait long behind a struggling server
CANCEL_CONNECT_TIMEOUT_SECONDS = 10.0


class PostgresQueryExecutor:
    """Runs raw SQL reads against a pool with server-side cancellation."""

    def __init__(
        self,
        pool: "PostgresPool",
        connect: Callable[..., Awaitable[asyncpg.Connection]] = asyncpg.connect,
    ):
        """Wrap a lazily created pool.

        Args:
            pool: Pool the queries run on
            connect: Opens the separate connection used to cancel a query
        """
        self.pool = pool
        self._connect = connect

    def execute(self, query: str, *args: Any) -> CancellableQuery[List[asyncpg.Record]]:
        """Start ``query`` and return a cancellable handle for its rows."""
        backend_pid: List[int] = []

        async def run() -> List[asyncpg.Record]:
            try:
                pool = await self.pool.get()
                async with pool.acquire() as conn:
                    backend_pid.append(conn.get_server_pid())
                    return await conn.fetch(query, *args)
            except _TRANSIENT_ERRORS as e:
                raise TransientStoreError(f"Postgres query failed: {e}", store="postgres") from e

        async def abort() -> None:
            if not backend_pid:
                return
            conn = await self._connect(
                dsn=settings.postgres_dsn, timeout=CANCEL_CONNECT_TIMEOUT_SECONDS
            )
            try:
                await conn.execute("SELECT pg_cancel_backend($1)", backend_pid[0])
            finally:
                await conn.close()
            logger.debug(f"Cancelled postgres backend {backend_pid[0]}")

        return CancellableQuery(run, abort, label="postgres query")


class PostgresPool:
    """Lazily created process-wide asyncpg pool."""

    def __init__(self):
        """Initialize without connecting."""
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def get(self) -> asyncpg.Pool:
        """Return the pool, creating it on first use."""
        async with self._lock:
            if self._pool is None:
                self._pool = await asyncpg.create_pool(
                    dsn=settings.postgres_dsn,
                    min_size=settings.POSTGRES_POOL_MIN_SIZE,
                    max_size=settings.POSTGRES_POOL_MAX_SIZE,
                )
        return self._pool

    async def close(self) -> None:
        """Close the pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


pg_pool = PostgresPool()

pg_executor = PostgresQueryExecutor(pg_pool)
