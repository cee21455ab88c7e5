"""Tests for the index registry."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from indexsync.core.exceptions import ConfigurationError
from indexsync.platform.search_index.registry import IndexRegistry
from indexsync.schemas.search_index import IndexAction, QueueItem, SearchIndexName


def _runner(name, index_name=None):
    runner = MagicMock()
    runner.name = name
    runner.processor.index_name = index_name or name
    return runner


@pytest.mark.asyncio
async def test_queue_update_enqueues_known_index(intent_queue):
    """Test that a known index name reaches the queue."""
    registry = IndexRegistry(intent_queue)

    await registry.queue_update(
        SearchIndexName.MODELS, [QueueItem(id=1), {"id": 2, "action": "Delete"}, 3]
    )

    pending = {i.entity_id: i.action for i in await intent_queue.peek("models")}
    assert pending == {1: IndexAction.UPDATE, 2: IndexAction.DELETE, 3: IndexAction.UPDATE}


@pytest.mark.asyncio
async def test_queue_update_drops_unknown_index(intent_queue):
    """Test that unknown names are logged and dropped without raising."""
    registry = IndexRegistry(intent_queue)

    await registry.queue_update("articles", [QueueItem(id=1)])

    assert await intent_queue.size("articles") == 0


@pytest.mark.asyncio
async def test_queue_update_resolves_job_name(intent_queue):
    """Test that a processor's job name queues onto its index."""
    registry = IndexRegistry(intent_queue)
    registry.register(_runner("metrics_images", "images"))

    await registry.queue_update("metrics_images", [QueueItem(id=4)])

    assert await intent_queue.size("images") == 1


@pytest.mark.asyncio
async def test_queue_update_swallows_queue_errors():
    """Test that a failing queue does not fail the producer."""
    queue = MagicMock()
    queue.enqueue = AsyncMock(side_effect=RuntimeError("redis down"))
    registry = IndexRegistry(queue)

    await registry.queue_update("users", [QueueItem(id=1)])

    queue.enqueue.assert_awaited_once()


@pytest.mark.asyncio
async def test_queue_update_drops_malformed_items(intent_queue):
    """Test that items that are not valid queue items are dropped."""
    registry = IndexRegistry(intent_queue)

    await registry.queue_update("users", [{"id": 1, "action": "Purge"}])

    assert await intent_queue.size("users") == 0


def test_get_unknown_runner_raises(intent_queue):
    """Test that looking up an unregistered name is a configuration error."""
    registry = IndexRegistry(intent_queue)

    with pytest.raises(ConfigurationError):
        registry.get("models")


def test_register_twice_raises(intent_queue):
    """Test that two runners cannot share a name."""
    registry = IndexRegistry(intent_queue)
    registry.register(_runner("models"))

    with pytest.raises(ConfigurationError):
        registry.register(_runner("models"))


def test_runners_are_sorted(intent_queue):
    """Test that runners are listed by name."""
    registry = IndexRegistry(intent_queue)
    for name in ["users", "models", "images"]:
        registry.register(_runner(name))

    assert [r.name for r in registry.runners()] == ["images", "models", "users"]
