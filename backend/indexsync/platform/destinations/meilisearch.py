"""Meilisearch destination."""

from typing import Any, Optional, Sequence

from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import (
    MeilisearchApiError,
    MeilisearchCommunicationError,
    MeilisearchTimeoutError,
)

from indexsync.core.config import settings
from indexsync.core.exceptions import TransientStoreError
from indexsync.platform.destinations._base import BaseSearchDestination, Document, IndexSettings
from indexsync.platform.retry_helpers import retry_transient

INDEX_NOT_FOUND = "index_not_found"


def _is_transient_api_error(error: MeilisearchApiError) -> bool:
    status = getattr(error, "status_code", None)
    return status is None or status == 429 or status >= 500


class MeilisearchDestination(BaseSearchDestination):
    """Pushes documents to Meilisearch and manages index settings."""

    def __init__(self, client: AsyncClient, task_timeout_ms: int = 600_000):
        """Initialize the destination.

        Args:
            client: Meilisearch async client shared by all workers
            task_timeout_ms: How long to wait for an enqueued Meilisearch task
        """
        super().__init__()
        self.client = client
        self.task_timeout_ms = task_timeout_ms

    async def _wait(self, task_uid: int) -> None:
        await self.client.wait_for_task(
            task_uid, timeout_in_ms=self.task_timeout_ms, raise_for_status=True
        )

    async def _call(self, operation: str, coro: Any) -> Any:
        """Await a client call, mapping communication failures to TransientStoreError."""
        try:
            return await coro
        except (MeilisearchCommunicationError, MeilisearchTimeoutError) as e:
            raise TransientStoreError(
                f"Meilisearch {operation} failed: {e}", store="meilisearch"
            ) from e
        except MeilisearchApiError as e:
            if _is_transient_api_error(e):
                raise TransientStoreError(
                    f"Meilisearch {operation} failed: {e}", store="meilisearch"
                ) from e
            raise

    @retry_transient
    async def ensure_index(self, index_name: str, index_settings: IndexSettings) -> None:
        """Get or create the index and apply any settings that differ."""
        try:
            index = await self._call("get_index", self.client.get_index(index_name))
        except MeilisearchApiError as e:
            if e.code != INDEX_NOT_FOUND:
                raise
            index = await self._call(
                "create_index",
                self.client.create_index(index_name, primary_key=index_settings.primary_key),
            )
            self.logger.info(f"Created search index {index_name}")

        current = await self._call("get_settings", index.get_settings())
        updates = [
            (
                "searchable_attributes",
                index_settings.searchable_attributes,
                index.update_searchable_attributes,
            ),
            (
                "filterable_attributes",
                sorted(index_settings.filterable_attributes),
                index.update_filterable_attributes,
            ),
            (
                "sortable_attributes",
                sorted(index_settings.sortable_attributes),
                index.update_sortable_attributes,
            ),
            ("ranking_rules", index_settings.ranking_rules, index.update_ranking_rules),
        ]
        for name, wanted, update in updates:
            if wanted is None:
                continue
            live = getattr(current, name, None)
            # Meilisearch stores filterable and sortable attributes sorted
            if live is not None and list(live) == list(wanted):
                continue
            task = await self._call(f"update_{name}", update(wanted))
            await self._wait(task.task_uid)
            self.logger.info(f"Updated {name} on {index_name}")

    async def update_docs(
        self, index_name: str, documents: Sequence[Document], batch_size: int
    ) -> int:
        """Upsert documents in chunks, waiting for each chunk to be applied."""
        if not documents:
            return 0
        index = self.client.index(index_name)
        sent = 0
        for offset in range(0, len(documents), batch_size):
            chunk = list(documents[offset : offset + batch_size])
            task = await self._call("update_documents", index.update_documents(chunk))
            await self._call("wait_for_task", self._wait(task.task_uid))
            sent += len(chunk)
        return sent

    async def delete_docs(self, index_name: str, ids: Sequence[int]) -> int:
        """Delete documents by id, waiting for the deletion to be applied."""
        if not ids:
            return 0
        index = self.client.index(index_name)
        task = await self._call(
            "delete_documents", index.delete_documents([str(i) for i in ids])
        )
        await self._call("wait_for_task", self._wait(task.task_uid))
        return len(ids)

    async def swap_indexes(self, index_name: str, other_index_name: str) -> None:
        """Swap two indexes atomically."""
        task = await self._call(
            "swap_indexes", self.client.swap_indexes([(index_name, other_index_name)])
        )
        await self._wait(task.task_uid)

    async def delete_index(self, index_name: str) -> None:
        """Delete an index if it exists."""
        await self._call("delete_index", self.client.delete_index_if_exists(index_name))


def create_search_destination() -> Optional[MeilisearchDestination]:
    """Build the destination from settings, or None when search is not configured."""
    if not settings.MEILISEARCH_URL:
        return None
    client = AsyncClient(
        url=settings.MEILISEARCH_URL,
        api_key=settings.MEILISEARCH_API_KEY,
        timeout=settings.MEILISEARCH_TIMEOUT_SECONDS,
    )
    return MeilisearchDestination(client, task_timeout_ms=settings.SEARCH_INDEX_TASK_TIMEOUT_MS)
