"""Base class for search index processors.

A processor describes one logical index: how to find its id range, how to
pull rows, how to turn them into documents and how to push them. The
``IndexSyncRunner`` drives these hooks through the run state machine
(setup, discover, pull, transform, push, advance cursor).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, ClassVar, List, Optional, Sequence

from indexsync.core.config import settings
from indexsync.platform.concurrency.cancellable import run_cancellable
from indexsync.platform.destinations._base import Document, IndexSettings
from indexsync.platform.retry_helpers import retry_transient
from indexsync.platform.search_index.context import SearchIndexRunContext
from indexsync.platform.search_index.discovery import discover_changed_ids
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.schemas.search_index import Batch, FullRange, IdRange, UpdateSet


class SearchIndexProcessor(ABC):
    """Describes how one search index is built.

    Subclasses set ``index_name`` and ``index_settings`` and implement
    ``discover_range``, ``pull_rows`` and ``transform_row``. Processors with
    more than one pull round per batch override ``pull_data`` instead of
    ``pull_rows``.

    Contract:
    - ``transform_row`` is pure: the same row always yields the same document
    - ``transform_row`` raises MalformedRowError for rows it cannot index
    - Pulls go through ``query`` so they are cancellable and retried
    """

    index_name: ClassVar[str]
    # Separate cursor (and registry name) for processors sharing an index
    job_name: ClassVar[Optional[str]] = None
    index_settings: ClassVar[IndexSettings] = IndexSettings()

    # Ids per pulled batch
    read_batch_size: ClassVar[int] = 1000
    # Documents per search engine call
    document_batch_size: ClassVar[int] = 1000
    # Upper bound on ids per UpdateSet batch
    update_batch_size: ClassVar[int] = 10_000
    # Parallel batch pipelines and in-flight batch cap (None = settings default)
    worker_count: ClassVar[Optional[int]] = None
    max_queue_size: ClassVar[Optional[int]] = None
    # Minimum time between incremental runs
    update_interval: ClassVar[timedelta] = timedelta(0)
    # Partial processors patch fields of documents owned by another processor
    # of the same index: they never consume intents or delete documents
    partial: ClassVar[bool] = False

    # Event-store discovery; disabled when ``event_entity_type`` is None
    event_table: ClassVar[str] = "entityMetricEvents"
    event_entity_type: ClassVar[Optional[str]] = None
    # Overlap subtracted from the cursor to absorb event-store ingestion lag
    event_lookback: ClassVar[timedelta] = timedelta(minutes=5)

    @property
    def name(self) -> str:
        """Registry name of the processor."""
        return self.job_name or self.index_name

    @property
    def cursor_key(self) -> str:
        """Key of the processor's cursor."""
        return self.name.lower()

    @property
    def effective_worker_count(self) -> int:
        """Worker count falling back to settings."""
        return self.worker_count or settings.SEARCH_INDEX_WORKER_COUNT

    @property
    def effective_max_queue_size(self) -> int:
        """In-flight batch cap falling back to settings."""
        return self.max_queue_size or settings.SEARCH_INDEX_MAX_QUEUE_SIZE

    @property
    def effective_update_interval(self) -> timedelta:
        """Update interval, or the settings default when the processor sets none."""
        if self.update_interval:
            return self.update_interval
        return timedelta(seconds=settings.SEARCH_INDEX_UPDATE_INTERVAL_SECONDS)

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    @retry_transient
    async def query(self, ctx: SearchIndexRunContext, sql: str, *args: Any) -> List[Any]:
        """Run ``sql`` against the primary store with the run's cancel registered."""
        return await run_cancellable(ctx.executor.execute(sql, *args), ctx.token)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def setup(self, ctx: SearchIndexRunContext) -> None:
        """Make sure the target index exists with the right settings."""
        await ctx.destination.ensure_index(ctx.target_index, self.index_settings)

    @abstractmethod
    async def discover_range(self, ctx: SearchIndexRunContext) -> IdRange:
        """Return the id range of every row eligible for the index."""
        pass

    async def discover_changed_ids(
        self, ctx: SearchIndexRunContext, since: datetime
    ) -> List[int]:
        """Return ids changed after ``since`` according to the event store."""
        if self.event_entity_type is None or ctx.event_store is None:
            return []
        return await discover_changed_ids(
            ctx.event_store,
            table=self.event_table,
            entity_type=self.event_entity_type,
            since=since - self.event_lookback,
            read_batch_size=self.read_batch_size,
            token=ctx.token,
            logger=ctx.logger,
        )

    async def pull_data(
        self, ctx: SearchIndexRunContext, batch: Batch, step: int, prev: Optional[Any]
    ) -> Optional[Any]:
        """Pull one round of data for ``batch``.

        Called with step 0, 1, ... and the previous round's data until it returns
        None, which means the batch is done (not that it failed).
        """
        if step > 0:
            return None
        return await self.pull_rows(ctx, batch)

    async def pull_rows(self, ctx: SearchIndexRunContext, batch: Batch) -> List[Any]:
        """Pull the rows of a single-round batch."""
        if isinstance(batch, FullRange):
            return await self.pull_range(ctx, batch)
        return await self.pull_ids(ctx, batch)

    async def pull_range(self, ctx: SearchIndexRunContext, batch: FullRange) -> List[Any]:
        """Pull eligible rows with id in ``[batch.start_id, batch.end_id]``."""
        raise NotImplementedError(f"{type(self).__name__} does not support full-range pulls")

    async def pull_ids(self, ctx: SearchIndexRunContext, batch: UpdateSet) -> List[Any]:
        """Pull eligible rows with id in ``batch.ids``."""
        raise NotImplementedError(f"{type(self).__name__} does not support id pulls")

    def transform(self, ctx: SearchIndexRunContext, data: Any) -> List[Document]:
        """Turn pulled data into documents, skipping malformed rows."""
        documents: List[Document] = []
        for row in data:
            try:
                documents.append(self.transform_row(row))
            except MalformedRowError as e:
                ctx.rows_skipped += 1
                ctx.logger.warning(
                    f"Skipping row {e.entity_id} of {ctx.index_name}: {e.reason}",
                    extra={"entity_id": e.entity_id},
                )
        return documents

    @abstractmethod
    def transform_row(self, row: Any) -> Document:
        """Map one row to its search document."""
        pass

    async def push_data(self, ctx: SearchIndexRunContext, documents: Sequence[Document]) -> int:
        """Upsert documents into the target index."""
        if not documents:
            return 0
        return await self._push(ctx, documents)

    @retry_transient
    async def _push(self, ctx: SearchIndexRunContext, documents: Sequence[Document]) -> int:
        return await ctx.destination.update_docs(
            ctx.target_index, documents, self.document_batch_size
        )
