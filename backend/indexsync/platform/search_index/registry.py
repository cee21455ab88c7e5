"""Name-based access to search indexes.

Business services call ``queue_update`` with a logical index name and never
import the processors themselves; only the intent queue is needed to record
that an entity changed. Admin tooling looks runners up by name.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from indexsync.core.exceptions import ConfigurationError
from indexsync.core.logging import logger
from indexsync.platform.search_index.intent_queue import IntentQueue
from indexsync.platform.search_index.runner import IndexSyncRunner
from indexsync.schemas.search_index import IndexAction, QueueItem, SearchIndexName

QueueItemLike = Union[QueueItem, Mapping[str, Any], int]


def _to_queue_item(item: QueueItemLike) -> QueueItem:
    if isinstance(item, QueueItem):
        return item
    if isinstance(item, int):
        return QueueItem(id=item, action=IndexAction.UPDATE)
    return QueueItem.model_validate(item)


class IndexRegistry:
    """Maps index names to the intent queue and to their runners."""

    def __init__(self, intent_queue: IntentQueue):
        """Initialize the registry.

        Args:
            intent_queue: Queue shared by every index
        """
        self.intent_queue = intent_queue
        self._runners: Dict[str, IndexSyncRunner] = {}

    def register(self, runner: IndexSyncRunner) -> None:
        """Expose ``runner`` under its processor's name."""
        if runner.name in self._runners:
            raise ConfigurationError(f"Search index {runner.name} is already registered")
        self._runners[runner.name] = runner

    def get(self, name: str) -> IndexSyncRunner:
        """Return the runner registered as ``name``.

        Raises:
            ConfigurationError: If no runner has that name
        """
        runner = self._runners.get(name)
        if runner is None:
            raise ConfigurationError(f"Unknown search index: {name}")
        return runner

    def runners(self) -> List[IndexSyncRunner]:
        """Registered runners ordered by name."""
        return [self._runners[name] for name in sorted(self._runners)]

    def _resolve_queue_name(self, name: str) -> Optional[str]:
        if name in SearchIndexName._value2member_map_:
            return name
        runner = self._runners.get(name)
        if runner is not None:
            return runner.processor.index_name
        return None

    async def queue_update(self, index_name: str, items: Iterable[QueueItemLike]) -> None:
        """Record that entities of ``index_name`` changed.

        Fire-and-forget: unknown names and queue failures are logged and
        dropped so they cannot fail the caller's own transaction.
        """
        queue_name = self._resolve_queue_name(str(getattr(index_name, "value", index_name)))
        if queue_name is None:
            logger.warning(f"Dropping update for unknown search index {index_name!r}")
            return

        try:
            queue_items = [_to_queue_item(item) for item in items]
        except ValueError as e:
            logger.warning(f"Dropping malformed update for {queue_name}: {e}")
            return
        if not queue_items:
            return

        try:
            await self.intent_queue.enqueue(queue_name, queue_items)
        except Exception as e:
            logger.error(
                f"Failed to queue {len(queue_items)} update(s) for {queue_name}: {e}",
                extra={"index_name": queue_name},
            )
