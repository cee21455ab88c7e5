"""Tests for the asyncpg query executor."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexsync.core.exceptions import OperationCancelledError
from indexsync.db.pg import PostgresQueryExecutor


class ExhaustedPool:
    """Pool with one connection, held by a query that never returns."""

    def __init__(self):
        self.fetching = asyncio.Event()
        self.conn = MagicMock()
        self.conn.get_server_pid.return_value = 77
        self.conn.fetch = self._fetch
        self.acquired = 0

    async def _fetch(self, query, *args):
        self.fetching.set()
        await asyncio.Event().wait()

    @asynccontextmanager
    async def acquire(self):
        self.acquired += 1
        if self.acquired > 1:
            # No connection is ever released
            await asyncio.Event().wait()
        yield self.conn


@pytest.fixture
def exhausted_pool():
    """Lazy pool wrapper around an exhausted pool."""
    pool = ExhaustedPool()
    wrapper = MagicMock()
    wrapper.get = AsyncMock(return_value=pool)
    return wrapper, pool


@pytest.mark.asyncio
async def test_cancel_uses_its_own_connection(exhausted_pool):
    """Test that cancelling a query does not wait for a pooled connection."""
    wrapper, pool = exhausted_pool
    cancel_conn = MagicMock()
    cancel_conn.execute = AsyncMock()
    cancel_conn.close = AsyncMock()
    connect = AsyncMock(return_value=cancel_conn)
    executor = PostgresQueryExecutor(wrapper, connect=connect)

    query = executor.execute('SELECT id FROM "Model"')
    await asyncio.wait_for(pool.fetching.wait(), 1)
    await asyncio.wait_for(query.cancel(), 1)

    cancel_conn.execute.assert_awaited_once_with("SELECT pg_cancel_backend($1)", 77)
    cancel_conn.close.assert_awaited_once()
    assert pool.acquired == 1
    with pytest.raises(OperationCancelledError):
        await query.result()


@pytest.mark.asyncio
async def test_cancel_closes_connection_when_cancel_fails(exhausted_pool):
    """Test that the cancel connection is closed even if the cancel statement fails."""
    wrapper, pool = exhausted_pool
    cancel_conn = MagicMock()
    cancel_conn.execute = AsyncMock(side_effect=OSError("connection reset"))
    cancel_conn.close = AsyncMock()
    executor = PostgresQueryExecutor(wrapper, connect=AsyncMock(return_value=cancel_conn))

    query = executor.execute('SELECT id FROM "Model"')
    await asyncio.wait_for(pool.fetching.wait(), 1)
    await asyncio.wait_for(query.cancel(), 1)

    cancel_conn.close.assert_awaited_once()
    with pytest.raises(OperationCancelledError):
        await query.result()


@pytest.mark.asyncio
async def test_cancel_before_connection_is_a_noop():
    """Test that a query that never got a connection opens no cancel connection."""

    async def never_ready():
        await asyncio.Event().wait()

    wrapper = MagicMock()
    wrapper.get = never_ready
    connect = AsyncMock()
    executor = PostgresQueryExecutor(wrapper, connect=connect)

    query = executor.execute("SELECT 1")
    await asyncio.wait_for(query.cancel(), 1)

    connect.assert_not_awaited()
