"""Unit test conftest for setting up test environment."""

import asyncio
import os
from typing import Any, Callable, Dict, List, Optional, Sequence

# Set minimal required environment variables before importing any indexsync modules
# This prevents Settings initialization errors during test collection
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "test_user")
os.environ.setdefault("POSTGRES_PASSWORD", "test_password")
os.environ.setdefault("POSTGRES_DB", "test_db")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

import pytest  # noqa: E402

from indexsync.platform.concurrency.cancellable import CancellableQuery  # noqa: E402
from indexsync.platform.destinations._base import (  # noqa: E402
    BaseSearchDestination,
    Document,
    IndexSettings,
)
from indexsync.platform.search_index.context import SyncDependencies  # noqa: E402
from indexsync.platform.search_index.cursors import InMemoryCursorStore  # noqa: E402
from indexsync.platform.search_index.intent_queue import InMemoryIntentQueue  # noqa: E402


class FakeExecutor:
    """Primary store stand-in answering queries with a handler.

    The handler receives the SQL and its arguments and returns rows. Every
    call is recorded; ``delay`` keeps queries in flight long enough to observe
    concurrency and cancellation.
    """

    def __init__(self, handler: Callable[..., List[Any]], delay: float = 0.0):
        self.handler = handler
        self.delay = delay
        self.calls: List[tuple] = []
        self.aborted = 0

    def execute(self, query: str, *args: Any) -> CancellableQuery:
        self.calls.append((query, args))

        async def run() -> List[Any]:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.handler(query, *args)

        async def abort() -> None:
            self.aborted += 1

        return CancellableQuery(run, abort, label="fake query")


class InMemoryDestination(BaseSearchDestination):
    """Search engine stand-in keeping documents in dicts."""

    def __init__(self, fail_pushes: int = 0, push_delay: float = 0.0):
        super().__init__()
        self.indexes: Dict[str, Dict[Any, Document]] = {}
        self.settings: Dict[str, IndexSettings] = {}
        self.push_calls: List[List[Document]] = []
        self.ensure_calls: List[str] = []
        self.swaps: List[tuple] = []
        self.fail_pushes = fail_pushes
        self.push_delay = push_delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def ensure_index(self, index_name: str, index_settings: IndexSettings) -> None:
        self.ensure_calls.append(index_name)
        self.indexes.setdefault(index_name, {})
        self.settings[index_name] = index_settings

    async def update_docs(
        self, index_name: str, documents: Sequence[Document], batch_size: int
    ) -> int:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.push_delay:
                await asyncio.sleep(self.push_delay)
            if self.fail_pushes > 0:
                self.fail_pushes -= 1
                raise RuntimeError("search engine rejected the batch")
            self.push_calls.append(list(documents))
            index = self.indexes.setdefault(index_name, {})
            for document in documents:
                index.setdefault(document["id"], {}).update(document)
            return len(documents)
        finally:
            self.in_flight -= 1

    async def delete_docs(self, index_name: str, ids: Sequence[int]) -> int:
        index = self.indexes.setdefault(index_name, {})
        for entity_id in ids:
            index.pop(entity_id, None)
        return len(ids)

    async def swap_indexes(self, index_name: str, other_index_name: str) -> None:
        self.swaps.append((index_name, other_index_name))
        self.indexes[index_name], self.indexes[other_index_name] = (
            self.indexes.get(other_index_name, {}),
            self.indexes.get(index_name, {}),
        )

    async def delete_index(self, index_name: str) -> None:
        self.indexes.pop(index_name, None)


def table_handler(rows: List[Dict[str, Any]]) -> Callable[..., List[Any]]:
    """Answer the bounding, range and id-list queries of a PrimaryStoreProcessor."""

    def handler(query: str, *args: Any) -> List[Any]:
        if "MIN(" in query:
            if not rows:
                return [{"start_id": None, "end_id": None}]
            ids = [row["id"] for row in rows]
            return [{"start_id": min(ids), "end_id": max(ids)}]
        if "BETWEEN" in query:
            start_id, end_id = args
            return [row for row in rows if start_id <= row["id"] <= end_id]
        if "ANY(" in query:
            wanted = set(args[0])
            return [row for row in rows if row["id"] in wanted]
        return []

    return handler


@pytest.fixture
def intent_queue():
    """In-memory intent queue."""
    return InMemoryIntentQueue()


@pytest.fixture
def cursor_store():
    """In-memory cursor store."""
    return InMemoryCursorStore()


@pytest.fixture
def destination():
    """In-memory search destination."""
    return InMemoryDestination()


@pytest.fixture
def make_deps(intent_queue, cursor_store, destination):
    """Build SyncDependencies around a fake executor."""

    def _make(
        executor: Any,
        destination_override: Optional[BaseSearchDestination] = None,
        event_store: Any = None,
    ) -> SyncDependencies:
        return SyncDependencies(
            intent_queue=intent_queue,
            cursor_store=cursor_store,
            executor=executor,
            destination=destination_override or destination,
            event_store=event_store,
        )

    return _make


@pytest.fixture
def fake_executor_class():
    """The FakeExecutor class."""
    return FakeExecutor


@pytest.fixture
def destination_class():
    """The InMemoryDestination class."""
    return InMemoryDestination


@pytest.fixture
def rows_handler():
    """Factory for handlers serving a PrimaryStoreProcessor from a list of rows."""
    return table_handler
