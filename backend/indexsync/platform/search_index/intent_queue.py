"""Deduplicating queue of pending index update intents.

Intents are keyed by (index name, entity id); enqueuing the same id again
replaces the pending action, so the last write wins. ``drain`` atomically
removes what it returns, which keeps concurrent drains of one index disjoint.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from indexsync.core.exceptions import TransientStoreError
from indexsync.schemas.search_index import IndexAction, QueueItem, UpdateIntent


class IntentQueue(ABC):
    """Storage for pending update intents."""

    @abstractmethod
    async def enqueue(self, index_name: str, items: Iterable[QueueItem]) -> int:
        """Merge items into the pending set of ``index_name``.

        Returns:
            Number of items written
        """
        pass

    @abstractmethod
    async def drain(self, index_name: str, max_items: int) -> List[UpdateIntent]:
        """Atomically remove and return up to ``max_items`` pending intents."""
        pass

    @abstractmethod
    async def peek(self, index_name: str) -> List[UpdateIntent]:
        """Return every pending intent of ``index_name`` without removing it."""
        pass

    @abstractmethod
    async def requeue(self, intents: Iterable[UpdateIntent]) -> int:
        """Put drained intents back unless a newer intent for the same id exists.

        Returns:
            Number of intents restored
        """
        pass

    @abstractmethod
    async def clear(self, index_name: str) -> None:
        """Drop every pending intent of ``index_name``."""
        pass

    @abstractmethod
    async def size(self, index_name: str) -> int:
        """Number of pending intents of ``index_name``."""
        pass

    async def drain_all(self, index_name: str, chunk_size: int = 10_000) -> List[UpdateIntent]:
        """Drain until the pending set of ``index_name`` is empty."""
        drained: List[UpdateIntent] = []
        while True:
            chunk = await self.drain(index_name, chunk_size)
            if not chunk:
                return drained
            drained.extend(chunk)


class InMemoryIntentQueue(IntentQueue):
    """Process-local intent queue guarded by a lock per index."""

    def __init__(self):
        """Create an empty queue."""
        self._pending: Dict[str, Dict[int, UpdateIntent]] = defaultdict(dict)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def enqueue(self, index_name: str, items: Iterable[QueueItem]) -> int:
        """Merge items; a repeated id replaces the pending intent."""
        written = 0
        async with self._locks[index_name]:
            pending = self._pending[index_name]
            for item in items:
                # Re-insert so iteration order follows the latest write
                pending.pop(item.id, None)
                pending[item.id] = UpdateIntent(
                    index_name=index_name, entity_id=item.id, action=item.action
                )
                written += 1
        return written

    async def drain(self, index_name: str, max_items: int) -> List[UpdateIntent]:
        """Remove and return up to ``max_items`` intents."""
        async with self._locks[index_name]:
            pending = self._pending[index_name]
            ids = list(pending.keys())[:max_items]
            return [pending.pop(entity_id) for entity_id in ids]

    async def peek(self, index_name: str) -> List[UpdateIntent]:
        """Return pending intents in write order."""
        async with self._locks[index_name]:
            return list(self._pending[index_name].values())

    async def requeue(self, intents: Iterable[UpdateIntent]) -> int:
        """Restore intents that have not been superseded."""
        restored = 0
        for intent in intents:
            async with self._locks[intent.index_name]:
                pending = self._pending[intent.index_name]
                if intent.entity_id not in pending:
                    pending[intent.entity_id] = intent
                    restored += 1
        return restored

    async def clear(self, index_name: str) -> None:
        """Drop pending intents."""
        async with self._locks[index_name]:
            self._pending[index_name].clear()

    async def size(self, index_name: str) -> int:
        """Number of pending intents."""
        return len(self._pending[index_name])


class RedisIntentQueue(IntentQueue):
    """Intent queue stored as one Redis hash per index.

    Hash fields are entity ids, values are ``"{action}|{enqueued_at iso}"``.
    HSET gives last-write-wins; the drain script picks and deletes fields in one
    atomic step.
    """

    KEY_PREFIX = "search_index_queue"

    _DRAIN_SCRIPT = """
    local items = redis.call('HRANDFIELD', KEYS[1], ARGV[1], 'WITHVALUES')
    for i = 1, #items, 2 do
        redis.call('HDEL', KEYS[1], items[i])
    end
    return items
    """

    def __init__(self, client: redis.Redis):
        """Initialize with a Redis client created with ``decode_responses=True``."""
        self.redis = client
        self._drain_script = client.register_script(self._DRAIN_SCRIPT)

    @classmethod
    def _key(cls, index_name: str) -> str:
        return f"{cls.KEY_PREFIX}:{index_name}"

    @staticmethod
    def _encode(action: IndexAction, enqueued_at: datetime) -> str:
        return f"{action.value}|{enqueued_at.isoformat()}"

    @staticmethod
    def _decode(index_name: str, field: str, value: str) -> UpdateIntent:
        action, _, enqueued_at = value.partition("|")
        return UpdateIntent(
            index_name=index_name,
            entity_id=int(field),
            action=IndexAction(action),
            enqueued_at=datetime.fromisoformat(enqueued_at),
        )

    async def enqueue(self, index_name: str, items: Iterable[QueueItem]) -> int:
        """HSET every item; duplicates within ``items`` keep the last action."""
        mapping: Dict[str, str] = {}
        for item in items:
            intent = UpdateIntent(index_name=index_name, entity_id=item.id, action=item.action)
            mapping[str(item.id)] = self._encode(intent.action, intent.enqueued_at)
        if not mapping:
            return 0
        try:
            await self.redis.hset(self._key(index_name), mapping=mapping)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientStoreError(f"Redis enqueue failed: {e}", store="redis") from e
        return len(mapping)

    async def drain(self, index_name: str, max_items: int) -> List[UpdateIntent]:
        """Atomically pop up to ``max_items`` intents."""
        if max_items <= 0:
            return []
        try:
            raw = await self._drain_script(keys=[self._key(index_name)], args=[max_items])
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientStoreError(f"Redis drain failed: {e}", store="redis") from e
        raw = raw or []
        return [self._decode(index_name, raw[i], raw[i + 1]) for i in range(0, len(raw), 2)]

    async def peek(self, index_name: str) -> List[UpdateIntent]:
        """HSCAN the index's hash."""
        try:
            return [
                self._decode(index_name, field, value)
                async for field, value in self.redis.hscan_iter(self._key(index_name))
            ]
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientStoreError(f"Redis peek failed: {e}", store="redis") from e

    async def requeue(self, intents: Iterable[UpdateIntent]) -> int:
        """HSETNX each intent so newer intents for the same id win."""
        intents = list(intents)
        if not intents:
            return 0
        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for intent in intents:
                    pipe.hsetnx(
                        self._key(intent.index_name),
                        str(intent.entity_id),
                        self._encode(intent.action, intent.enqueued_at),
                    )
                results = await pipe.execute()
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise TransientStoreError(f"Redis requeue failed: {e}", store="redis") from e
        return sum(1 for written in results if written)

    async def clear(self, index_name: str) -> None:
        """Delete the index's hash."""
        await self.redis.delete(self._key(index_name))

    async def size(self, index_name: str) -> int:
        """HLEN of the index's hash."""
        return await self.redis.hlen(self._key(index_name))
