"""Module for the search index factory that wires runners to their clients."""

from typing import Iterable, Optional, Type

from indexsync.core.logging import logger
from indexsync.core.redis_client import redis_client
from indexsync.db.pg import pg_executor
from indexsync.platform.clickhouse.client import create_clickhouse_client
from indexsync.platform.destinations.meilisearch import create_search_destination
from indexsync.platform.search_index.context import SyncDependencies
from indexsync.platform.search_index.cursors import SqlCursorStore
from indexsync.platform.search_index.indexes import DEFAULT_PROCESSORS
from indexsync.platform.search_index.intent_queue import RedisIntentQueue
from indexsync.platform.search_index.processor import SearchIndexProcessor
from indexsync.platform.search_index.registry import IndexRegistry
from indexsync.platform.search_index.runner import IndexSyncRunner


class SearchIndexFactory:
    """Factory for the index registry and its runners."""

    @classmethod
    def create_dependencies(cls) -> SyncDependencies:
        """Build the shared clients from settings.

        The search engine and event store are optional: without them runs are
        skipped and discovery relies on queued intents.
        """
        destination = create_search_destination()
        event_store = create_clickhouse_client()
        if destination is None:
            logger.warning("MEILISEARCH_URL is not set, search index runs are disabled")
        if event_store is None:
            logger.info("CLICKHOUSE_URL is not set, event-store discovery is disabled")
        return SyncDependencies(
            intent_queue=RedisIntentQueue(redis_client.client),
            cursor_store=SqlCursorStore(),
            executor=pg_executor,
            destination=destination,
            event_store=event_store,
        )

    @classmethod
    def create_registry(
        cls,
        deps: Optional[SyncDependencies] = None,
        processors: Optional[Iterable[Type[SearchIndexProcessor]]] = None,
    ) -> IndexRegistry:
        """Create a registry with one runner per processor.

        Args:
            deps: Shared clients (default: built from settings)
            processors: Processor classes to register (default: every platform index)

        Returns:
            The populated registry
        """
        deps = deps or cls.create_dependencies()
        registry = IndexRegistry(deps.intent_queue)
        for processor_class in processors or DEFAULT_PROCESSORS:
            registry.register(IndexSyncRunner(processor_class(), deps))
        logger.info(
            f"Registered search indexes: {', '.join(r.name for r in registry.runners())}"
        )
        return registry
