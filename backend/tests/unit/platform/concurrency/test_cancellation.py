"""Tests for cancellation tokens and cancellable queries."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexsync.core.exceptions import OperationCancelledError
from indexsync.platform.concurrency import (
    CancellableQuery,
    CancellationToken,
    run_cancellable,
)


def test_callbacks_run_exactly_once():
    """Test that every registered callback is invoked once, even on repeated cancel."""
    token = CancellationToken()
    first, second = MagicMock(), MagicMock()
    token.register(first)
    token.register(second)

    token.cancel("shutdown")
    token.cancel("again")

    first.assert_called_once()
    second.assert_called_once()
    assert token.stopped is True
    assert token.reason == "shutdown"


def test_unregistered_callback_is_not_invoked():
    """Test that an operation that finished no longer gets cancelled."""
    token = CancellationToken()
    callback = MagicMock()
    unregister = token.register(callback)
    unregister()

    token.cancel()

    callback.assert_not_called()


def test_register_after_cancel_invokes_immediately():
    """Test that late registrations are cancelled right away."""
    token = CancellationToken()
    token.cancel()
    callback = MagicMock()

    token.register(callback)

    callback.assert_called_once()


def test_raise_if_cancelled():
    """Test that a cancelled token raises OperationCancelledError."""
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel("client disconnected")

    with pytest.raises(OperationCancelledError, match="client disconnected"):
        token.raise_if_cancelled()


@pytest.mark.asyncio
async def test_coroutine_callbacks_are_scheduled():
    """Test that async callbacks run on the loop and can be awaited."""
    token = CancellationToken()
    callback = AsyncMock()
    token.register(callback)

    token.cancel()
    await token.wait_pending()

    callback.assert_awaited_once()


@pytest.mark.asyncio
async def test_query_result():
    """Test that a query that is not cancelled returns its result."""

    async def run():
        return [1, 2, 3]

    query = CancellableQuery(run)

    assert await query.result() == [1, 2, 3]
    assert query.done is True
    assert query.cancelled is False


@pytest.mark.asyncio
async def test_query_error_propagates():
    """Test that store failures are not turned into cancellations."""

    async def run():
        raise RuntimeError("syntax error")

    with pytest.raises(RuntimeError):
        await CancellableQuery(run).result()


@pytest.mark.asyncio
async def test_cancel_aborts_server_side_and_raises_cancelled():
    """Test that cancel calls the abort hook and result raises OperationCancelledError."""
    abort = AsyncMock()

    async def run():
        await asyncio.sleep(10)

    query = CancellableQuery(run, abort, label="slow query")
    await asyncio.sleep(0)
    await query.cancel()

    with pytest.raises(OperationCancelledError, match="slow query"):
        await query.result()
    abort.assert_awaited_once()
    assert query.cancelled is True


@pytest.mark.asyncio
async def test_cancel_after_completion_is_noop():
    """Test that cancelling a finished query does not call abort."""
    abort = AsyncMock()

    async def run():
        return "done"

    query = CancellableQuery(run, abort)
    await query.result()
    await query.cancel()

    abort.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_cancellable_reaches_query_through_token():
    """Test that cancelling the job token aborts the in-flight query promptly."""
    token = CancellationToken()
    abort = AsyncMock()

    async def run():
        await asyncio.sleep(10)

    query = CancellableQuery(run, abort)
    waiter = asyncio.create_task(run_cancellable(query, token))
    await asyncio.sleep(0.01)
    token.cancel()

    with pytest.raises(OperationCancelledError):
        await asyncio.wait_for(waiter, timeout=1.0)
    abort.assert_awaited_once()
