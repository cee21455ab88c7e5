"""Tests for the update intent queues."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from indexsync.core.exceptions import TransientStoreError
from indexsync.platform.search_index.intent_queue import InMemoryIntentQueue, RedisIntentQueue
from indexsync.schemas.search_index import IndexAction, QueueItem, UpdateIntent


@pytest.mark.asyncio
async def test_later_intent_supersedes_earlier():
    """Test that Update then Delete for id 7 drains as a single Delete."""
    queue = InMemoryIntentQueue()
    await queue.enqueue("models", [QueueItem(id=7, action=IndexAction.UPDATE)])
    await queue.enqueue("models", [QueueItem(id=7, action=IndexAction.DELETE)])

    drained = await queue.drain_all("models")

    assert len(drained) == 1
    assert drained[0].entity_id == 7
    assert drained[0].action == IndexAction.DELETE


@pytest.mark.asyncio
async def test_queues_are_per_index():
    """Test that intents of one index are not drained by another."""
    queue = InMemoryIntentQueue()
    await queue.enqueue("models", [QueueItem(id=1)])
    await queue.enqueue("users", [QueueItem(id=1)])

    assert len(await queue.drain_all("models")) == 1
    assert await queue.size("users") == 1


@pytest.mark.asyncio
async def test_drain_respects_max_and_removes():
    """Test that drain returns at most ``max_items`` and removes them."""
    queue = InMemoryIntentQueue()
    await queue.enqueue("images", [QueueItem(id=i) for i in range(5)])

    first = await queue.drain("images", 3)
    rest = await queue.drain("images", 10)

    assert len(first) == 3
    assert len(rest) == 2
    assert {i.entity_id for i in first}.isdisjoint({i.entity_id for i in rest})
    assert await queue.size("images") == 0


@pytest.mark.asyncio
async def test_peek_does_not_consume():
    """Test that peeking leaves intents queued."""
    queue = InMemoryIntentQueue()
    await queue.enqueue("images", [QueueItem(id=1), QueueItem(id=2)])

    peeked = await queue.peek("images")

    assert [i.entity_id for i in peeked] == [1, 2]
    assert await queue.size("images") == 2


@pytest.mark.asyncio
async def test_requeue_does_not_override_newer_intent():
    """Test that a requeued intent loses against one enqueued meanwhile."""
    queue = InMemoryIntentQueue()
    stale = UpdateIntent(index_name="models", entity_id=7, action=IndexAction.UPDATE)
    await queue.enqueue("models", [QueueItem(id=7, action=IndexAction.DELETE)])

    restored = await queue.requeue([stale, UpdateIntent(index_name="models", entity_id=8)])

    assert restored == 1
    pending = {i.entity_id: i.action for i in await queue.peek("models")}
    assert pending == {7: IndexAction.DELETE, 8: IndexAction.UPDATE}


@pytest.mark.asyncio
async def test_concurrent_drains_are_disjoint():
    """Test that drains racing on one index never hand out the same intent twice."""
    queue = InMemoryIntentQueue()
    await queue.enqueue("models", [QueueItem(id=i) for i in range(100)])

    results = await asyncio.gather(*(queue.drain("models", 15) for _ in range(8)))

    drained = [intent.entity_id for result in results for intent in result]
    assert len(drained) == len(set(drained)) == 100
    assert set(drained) == set(range(100))
    assert await queue.size("models") == 0


@pytest.fixture
def mock_redis():
    """Mock async Redis client with a registered drain script."""
    client = MagicMock()
    client.hset = AsyncMock(return_value=1)
    client.hlen = AsyncMock(return_value=0)
    client.register_script.return_value = AsyncMock(return_value=[])
    return client


@pytest.mark.asyncio
async def test_redis_enqueue_keeps_last_action_per_id(mock_redis):
    """Test that duplicate ids in one call are written once with the last action."""
    queue = RedisIntentQueue(mock_redis)

    written = await queue.enqueue(
        "models",
        [QueueItem(id=7, action=IndexAction.UPDATE), QueueItem(id=7, action=IndexAction.DELETE)],
    )

    assert written == 1
    key = mock_redis.hset.call_args.args[0]
    mapping = mock_redis.hset.call_args.kwargs["mapping"]
    assert key == "search_index_queue:models"
    assert list(mapping) == ["7"]
    assert mapping["7"].startswith("Delete|")


@pytest.mark.asyncio
async def test_redis_drain_decodes_fields(mock_redis):
    """Test that the drain script output is decoded into intents."""
    mock_redis.register_script.return_value = AsyncMock(
        return_value=[
            "5",
            "Update|2024-01-01T00:00:00+00:00",
            "9",
            "Delete|2024-01-02T00:00:00+00:00",
        ]
    )
    queue = RedisIntentQueue(mock_redis)

    drained = await queue.drain("users", 10)

    assert [(i.entity_id, i.action) for i in drained] == [
        (5, IndexAction.UPDATE),
        (9, IndexAction.DELETE),
    ]
    assert drained[0].enqueued_at.year == 2024


@pytest.mark.asyncio
async def test_redis_connection_errors_are_transient(mock_redis):
    """Test that Redis outages surface as TransientStoreError."""
    mock_redis.hset = AsyncMock(side_effect=RedisConnectionError("down"))
    queue = RedisIntentQueue(mock_redis)

    with pytest.raises(TransientStoreError):
        await queue.enqueue("models", [QueueItem(id=1)])


@pytest.mark.asyncio
async def test_redis_concurrent_drains_are_disjoint(mock_redis):
    """Test that each drain is one script call, so racing drains split the hash."""
    stored = {str(i): "Update|2024-01-01T00:00:00+00:00" for i in range(40)}

    async def drain_script(keys, args):
        # A script runs alone on the server; yield first so calls interleave
        await asyncio.sleep(0)
        fields = list(stored)[: args[0]]
        raw = []
        for field in fields:
            raw.extend([field, stored.pop(field)])
        return raw

    mock_redis.register_script.return_value = AsyncMock(side_effect=drain_script)
    queue = RedisIntentQueue(mock_redis)

    results = await asyncio.gather(*(queue.drain("models", 7) for _ in range(6)))

    drained = [intent.entity_id for result in results for intent in result]
    assert len(drained) == len(set(drained)) == 40
    assert stored == {}
    script = mock_redis.register_script.return_value
    assert script.await_count == 6
    assert script.call_args.kwargs == {"keys": ["search_index_queue:models"], "args": [7]}
