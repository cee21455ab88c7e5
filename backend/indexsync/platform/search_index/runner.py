"""Runs a search index processor.

One runner exists per processor and process. It owns the processor's cursor:
``update``, ``reset`` and ``process_queues`` hold the runner's lock, so at most
one of them advances the cursor at a time. Inside a run, batches are pulled,
transformed and pushed by up to ``worker_count`` concurrent pipelines.

Run flow:
1. Setup (once per process and target index)
2. DiscoverRange: full id range on cold start, changed ids + intents otherwise
3. PullBatch / Transform / Push per batch, in parallel
4. AdvanceCursor: full-range progress after each contiguous chunk, the run
   start time once every batch succeeded
"""

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime
from itertools import chain
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from indexsync.core.datetime_utils import utc_now
from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import ContextualLogger, LoggerConfigurator
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.concurrency.limiter import limit_concurrency
from indexsync.platform.destinations._base import Document
from indexsync.platform.retry_helpers import retry_transient
from indexsync.platform.search_index import metrics
from indexsync.platform.search_index.config import SyncRunConfig
from indexsync.platform.search_index.context import (
    BatchOutcome,
    SearchIndexRunContext,
    SyncDependencies,
)
from indexsync.platform.search_index.cursors import CursorStore
from indexsync.platform.search_index.exceptions import IndexBusyError
from indexsync.platform.search_index.planning import (
    dedupe_ids,
    full_range_chunk_count,
    plan_full_range,
    plan_update_sets,
)
from indexsync.platform.search_index.processor import SearchIndexProcessor
from indexsync.schemas.search_index import (
    Batch,
    FullRange,
    IndexAction,
    QueueItem,
    RunSummary,
    SyncCursor,
    UpdateIntent,
)

# update_sync is meant for a handful of ids handed over by a request
UPDATE_SYNC_BATCH_SIZE = 500
UPDATE_SYNC_WORKER_COUNT = 5


class FullRangeCommitTracker:
    """Advances ``pull_step`` over contiguously pushed full-range chunks.

    Chunks finish out of order; the persisted step only moves past chunk k once
    every chunk before it was pushed, so a resumed run never skips a chunk.
    """

    def __init__(
        self, cursor_store: CursorStore, cursor: SyncCursor, first_step: int, persist: bool
    ):
        """Start tracking at ``first_step``."""
        self.cursor_store = cursor_store
        self.cursor = cursor
        self.persist = persist
        self._next_step = first_step
        self._done: set = set()
        self._lock = asyncio.Lock()

    @property
    def next_step(self) -> int:
        """First chunk not yet known to be pushed."""
        return self._next_step

    async def commit(self, step: int) -> None:
        """Record chunk ``step`` as pushed and persist any contiguous progress."""
        async with self._lock:
            self._done.add(step)
            advanced = False
            while self._next_step in self._done:
                self._done.remove(self._next_step)
                self._next_step += 1
                advanced = True
            if advanced and self.persist:
                self.cursor = await self.cursor_store.save(
                    self.cursor.model_copy(update={"pull_step": self._next_step})
                )


class _IntentLedger:
    """Intents taken from the queue by a run, until their ids are pushed."""

    def __init__(self, intents: Iterable[UpdateIntent], consumed: bool):
        """Split intents by action; a later intent for an id replaces an earlier one."""
        self.consumed = consumed
        self.updates: Dict[int, UpdateIntent] = {}
        self.deletes: Dict[int, UpdateIntent] = {}
        for intent in intents:
            if intent.action == IndexAction.DELETE:
                self.updates.pop(intent.entity_id, None)
                self.deletes[intent.entity_id] = intent
            else:
                self.deletes.pop(intent.entity_id, None)
                self.updates[intent.entity_id] = intent

    @property
    def update_ids(self) -> List[int]:
        """Ids still waiting to be pulled and pushed."""
        return sorted(self.updates)

    @property
    def delete_ids(self) -> List[int]:
        """Ids still waiting to be deleted."""
        return sorted(self.deletes)

    def settle(self, ids: Iterable[int]) -> None:
        """Mark ids as pushed."""
        for entity_id in ids:
            self.updates.pop(entity_id, None)

    def settle_deletes(self) -> None:
        """Mark every delete as applied."""
        self.deletes.clear()

    def unsettled(self) -> List[UpdateIntent]:
        """Intents whose effect has not been applied."""
        return list(self.updates.values()) + list(self.deletes.values())


class IndexSyncRunner:
    """Drives one processor through update, reset and queue runs."""

    def __init__(self, processor: SearchIndexProcessor, deps: SyncDependencies):
        """Initialize the runner.

        Args:
            processor: Processor describing the index
            deps: Clients shared by every run
        """
        self.processor = processor
        self.deps = deps
        self.logger: ContextualLogger = LoggerConfigurator.configure_logger(
            "indexsync.search_index",
            dimensions={"index_name": processor.index_name, "processor": processor.name},
        )
        self._lock = asyncio.Lock()
        self._setup_done: set = set()

    @property
    def name(self) -> str:
        """Registry name of the processor."""
        return self.processor.name

    @property
    def is_running(self) -> bool:
        """Whether a cursor-owning run is in progress."""
        return self._lock.locked()

    # ==================================================================
    # Helpers
    # ==================================================================

    @asynccontextmanager
    async def _exclusive(self, mode: str):
        if self._lock.locked():
            raise IndexBusyError(self.name)
        async with self._lock:
            async with metrics.track_run(self.name, mode):
                yield

    def _new_context(
        self, token: CancellationToken, target_index: str, started_at: datetime
    ) -> SearchIndexRunContext:
        run_id = uuid4().hex[:12]
        return SearchIndexRunContext(
            index_name=self.processor.index_name,
            target_index=target_index,
            token=token,
            logger=self.logger.with_context(run_id=run_id, target_index=target_index),
            executor=self.deps.executor,
            event_store=self.deps.event_store,
            destination=self.deps.destination,
            started_at=started_at,
            run_id=run_id,
        )

    def _summary(self, mode: str, started_at: datetime) -> RunSummary:
        return RunSummary(index_name=self.name, mode=mode, started_at=started_at)

    def _disabled(self, summary: RunSummary) -> bool:
        if self.deps.destination is None:
            self.logger.warning(
                f"Search engine is not configured, skipping {summary.mode} of {self.name}"
            )
            summary.skipped = True
            return True
        return False

    def _cancelled_in_discovery(
        self, ctx: SearchIndexRunContext, summary: RunSummary
    ) -> RunSummary:
        summary.cancelled = True
        ctx.logger.info(f"{summary.mode} of {self.name} cancelled during discovery")
        return summary

    async def _ensure_setup(self, ctx: SearchIndexRunContext) -> None:
        if ctx.target_index in self._setup_done:
            return
        await self.processor.setup(ctx)
        self._setup_done.add(ctx.target_index)
        ctx.logger.info(f"Index {ctx.target_index} is set up")

    def _may_advance_last_updated(self) -> bool:
        return not self.processor.partial or self.processor.job_name is not None

    async def _take_intents(self, ctx: SearchIndexRunContext) -> _IntentLedger:
        """Drain (or, for partial processors, peek) the index's pending intents."""
        queue = self.deps.intent_queue
        if self.processor.partial:
            intents = await queue.peek(self.processor.index_name)
            consumed = False
        else:
            intents = await queue.drain_all(self.processor.index_name)
            consumed = True
            metrics.intents_drained.labels(index_name=self.name).inc(len(intents))
        if intents:
            ctx.logger.info(f"Took {len(intents)} queued intent(s)")
        return _IntentLedger(intents, consumed=consumed)

    async def _return_unsettled(
        self, ctx: SearchIndexRunContext, ledger: _IntentLedger
    ) -> None:
        if not ledger.consumed:
            return
        unsettled = ledger.unsettled()
        if not unsettled:
            return
        restored = await self.deps.intent_queue.requeue(unsettled)
        ctx.logger.info(f"Requeued {restored} of {len(unsettled)} unprocessed intent(s)")

    @retry_transient
    async def _delete_docs(self, ctx: SearchIndexRunContext, ids: Sequence[int]) -> int:
        return await ctx.destination.delete_docs(ctx.target_index, ids)

    async def _apply_deletes(
        self, ctx: SearchIndexRunContext, ledger: _IntentLedger, summary: RunSummary
    ) -> None:
        """Remove documents of Delete intents. Partial processors never delete."""
        if not ledger.deletes or self.processor.partial:
            return
        ids = ledger.delete_ids
        start = time.monotonic()
        try:
            for offset in range(0, len(ids), self.processor.document_batch_size):
                chunk = ids[offset : offset + self.processor.document_batch_size]
                summary.documents_deleted += await self._delete_docs(ctx, chunk)
        except Exception as e:
            summary.batches_failed += 1
            metrics.batches_failed.labels(index_name=self.name).inc()
            ctx.logger.error(
                f"Deleting {len(ids)} document(s) from {ctx.target_index} failed after "
                f"{time.monotonic() - start:.2f}s: {e}",
                extra={"entity_ids": ids[:50]},
            )
            return
        ledger.settle_deletes()
        metrics.documents_deleted.labels(index_name=self.name).inc(len(ids))
        ctx.logger.info(f"Deleted {len(ids)} document(s) from {ctx.target_index}")

    async def _plan_full_range(
        self,
        ctx: SearchIndexRunContext,
        cursor: SyncCursor,
        *,
        batch_size: int,
        resume: bool,
        persist: bool,
    ) -> Optional[Tuple[Iterator[FullRange], FullRangeCommitTracker]]:
        """Build the full-range plan, resuming an interrupted pass when allowed."""
        if resume and cursor.has_pending_range:
            start_id, end_id, first_step = (
                cursor.range_start_id,
                cursor.range_end_id,
                cursor.pull_step,
            )
            if cursor.range_started_at is not None:
                ctx.advance_to = cursor.range_started_at
            ctx.logger.info(
                f"Resuming full range {start_id}-{end_id} at chunk {first_step}"
            )
        else:
            id_range = await self.processor.discover_range(ctx)
            if id_range.is_empty:
                ctx.logger.info("No eligible rows, nothing to pull")
                return None
            start_id, end_id, first_step = id_range.start_id, id_range.end_id, 0
            if persist:
                cursor = await self.deps.cursor_store.save(
                    cursor.model_copy(
                        update={
                            "range_start_id": start_id,
                            "range_end_id": end_id,
                            "range_started_at": ctx.started_at,
                            "pull_step": 0,
                        }
                    )
                )

        total = full_range_chunk_count(start_id, end_id, batch_size)
        ctx.logger.info(
            f"Full range {start_id}-{end_id}: {total - first_step} chunk(s) of {batch_size}"
        )
        tracker = FullRangeCommitTracker(self.deps.cursor_store, cursor, first_step, persist)
        return plan_full_range(start_id, end_id, batch_size, first_step), tracker

    async def _process_batch(self, ctx: SearchIndexRunContext, batch: Batch) -> BatchOutcome:
        """PullBatch, Transform and Push for every pull step of one batch."""
        outcome = BatchOutcome()
        prev: Optional[Any] = None
        while True:
            data = await self.processor.pull_data(ctx, batch, outcome.steps, prev)
            if data is None:
                return outcome
            documents = self.processor.transform(ctx, data)
            outcome.documents_pushed += await self.processor.push_data(ctx, documents)
            prev = data
            outcome.steps += 1

    async def _run_batch(
        self,
        ctx: SearchIndexRunContext,
        batch: Batch,
        summary: RunSummary,
        tracker: Optional[FullRangeCommitTracker],
        ledger: Optional[_IntentLedger],
    ) -> None:
        if ctx.token.stopped:
            return

        start = time.monotonic()
        async with metrics.track_batch(self.name):
            try:
                outcome = await self._process_batch(ctx, batch)
                if isinstance(batch, FullRange):
                    if tracker is not None:
                        await tracker.commit(batch.step)
                elif ledger is not None:
                    ledger.settle(batch.ids)
            except OperationCancelledError:
                summary.cancelled = True
                ctx.logger.info(f"Batch {batch.describe()} cancelled")
                return
            except Exception as e:
                summary.batches_failed += 1
                metrics.batches_failed.labels(index_name=self.name).inc()
                ctx.logger.error(
                    f"Batch {batch.describe()} of {ctx.target_index} failed after "
                    f"{time.monotonic() - start:.2f}s: {e}",
                    exc_info=True,
                    extra={"batch": batch.model_dump()},
                )
                return

        summary.documents_pushed += outcome.documents_pushed
        metrics.documents_pushed.labels(index_name=self.name).inc(outcome.documents_pushed)
        ctx.logger.debug(
            f"Batch {batch.describe()} pushed {outcome.documents_pushed} document(s) "
            f"in {time.monotonic() - start:.2f}s"
        )

    async def _run_batches(
        self,
        ctx: SearchIndexRunContext,
        plan: Iterator[Batch],
        summary: RunSummary,
        *,
        worker_count: int,
        max_queue_size: int,
        tracker: Optional[FullRangeCommitTracker] = None,
        ledger: Optional[_IntentLedger] = None,
    ) -> None:
        """Run the plan with bounded concurrency.

        The plan is consumed lazily: a batch is only taken from it when a
        pipeline is free, so no more than ``min(worker_count, max_queue_size)``
        batches are pulled but not yet pushed.
        """
        concurrency = max(1, min(worker_count, max_queue_size))

        def next_task():
            if ctx.token.stopped:
                return None
            batch = next(plan, None)
            if batch is None:
                return None
            summary.batches_total += 1
            return lambda: self._run_batch(ctx, batch, summary, tracker, ledger)

        await limit_concurrency(
            next_task,
            concurrency,
            token=ctx.token,
            logger=ctx.logger,
            name=f"{self.name} batches",
        )
        summary.rows_skipped += ctx.rows_skipped
        if ctx.rows_skipped:
            metrics.rows_skipped.labels(index_name=self.name).inc(ctx.rows_skipped)
        if ctx.token.stopped:
            summary.cancelled = True

    async def _advance_cursor(self, ctx: SearchIndexRunContext, summary: RunSummary) -> None:
        """Set ``last_updated_at`` to ``ctx.advance_to`` and clear full-range progress."""
        if not self._may_advance_last_updated():
            return
        cursor = await self.deps.cursor_store.get(
            self.processor.cursor_key, self.processor.index_name
        )
        await self.deps.cursor_store.save(
            cursor.model_copy(
                update={
                    "last_updated_at": ctx.advance_to,
                    "pull_step": 0,
                    "range_start_id": None,
                    "range_end_id": None,
                    "range_started_at": None,
                }
            )
        )
        summary.cursor_advanced = True
        metrics.last_success_timestamp.labels(index_name=self.name).set(
            ctx.started_at.timestamp()
        )

    # ==================================================================
    # Operations
    # ==================================================================

    async def update(
        self,
        config: Optional[SyncRunConfig] = None,
        token: Optional[CancellationToken] = None,
    ) -> RunSummary:
        """Incremental run.

        Without a cursor this is a full-range pass. With one, ids changed since
        the cursor plus queued intents are pulled. The cursor moves only if every
        batch succeeded, to the run start time or, when the run finished a
        resumed full-range pass, to the start of the run that planned it.

        Raises:
            IndexBusyError: If another cursor-owning run of this index is in progress
        """
        config = config or SyncRunConfig.default()
        token = token or CancellationToken()
        p = self.processor

        async with self._exclusive("update"):
            started_at = utc_now()
            summary = self._summary("update", started_at)
            if self._disabled(summary):
                return summary

            cursor = await self.deps.cursor_store.get(p.cursor_key, p.index_name)
            interval = p.effective_update_interval
            if (
                not config.force
                and cursor.last_updated_at is not None
                and interval
                and cursor.last_updated_at + interval > started_at
            ):
                self.logger.info(
                    f"{self.name} was updated at {cursor.last_updated_at.isoformat()}, "
                    f"next update is due after {interval}"
                )
                summary.skipped = True
                return summary

            ctx = self._new_context(token, p.index_name, started_at)
            await self._ensure_setup(ctx)
            read_batch_size = config.read_batch_size or p.read_batch_size

            # 1. Discover
            plans: List[Iterator[Batch]] = []
            tracker: Optional[FullRangeCommitTracker] = None
            changed_ids: List[int] = []
            try:
                if cursor.last_updated_at is None or config.full_resync:
                    planned = await self._plan_full_range(
                        ctx,
                        cursor,
                        batch_size=read_batch_size,
                        resume=not config.full_resync and config.read_batch_size is None,
                        persist=True,
                    )
                    if planned is not None:
                        full_plan, tracker = planned
                        plans.append(full_plan)
                elif config.discover_changes:
                    changed_ids = await p.discover_changed_ids(ctx, cursor.last_updated_at)
            except OperationCancelledError:
                return self._cancelled_in_discovery(ctx, summary)

            ledger = (
                await self._take_intents(ctx)
                if config.process_intents
                else _IntentLedger([], consumed=False)
            )

            try:
                # 2. Deletes first, so a re-pull cannot race a pending delete
                if config.process_deletes:
                    await self._apply_deletes(ctx, ledger, summary)

                delete_ids = set(ledger.delete_ids)
                update_ids = [
                    entity_id
                    for entity_id in dedupe_ids(changed_ids + ledger.update_ids)
                    if entity_id not in delete_ids
                ]
                if update_ids:
                    ctx.logger.info(f"{len(update_ids)} id(s) to update")
                plans.append(
                    plan_update_sets(update_ids, min(read_batch_size, p.update_batch_size))
                )

                # 3. Pull, transform, push
                await self._run_batches(
                    ctx,
                    chain(*plans),
                    summary,
                    worker_count=config.worker_count or p.effective_worker_count,
                    max_queue_size=config.max_queue_size or p.effective_max_queue_size,
                    tracker=tracker,
                    ledger=ledger,
                )
            finally:
                await self._return_unsettled(ctx, ledger)

            # 4. Advance
            if summary.succeeded:
                await self._advance_cursor(ctx, summary)
            else:
                ctx.logger.warning(
                    f"Run of {self.name} incomplete ({summary.batches_failed} failed batch(es), "
                    f"cancelled={summary.cancelled}); cursor stays at "
                    f"{cursor.last_updated_at}"
                )

            ctx.logger.info(
                f"Updated {self.name}: {summary.documents_pushed} pushed, "
                f"{summary.documents_deleted} deleted, {summary.batches_total} batch(es)",
                extra={"summary": summary.model_dump(mode="json")},
            )
            return summary

    async def reset(self, token: Optional[CancellationToken] = None) -> RunSummary:
        """Rebuild the index from scratch.

        Documents go into ``{index}_NEW``, which replaces the live index through
        an atomic swap only if every batch succeeded. Intents queued before the
        rebuild started are dropped. Partial processors re-push in place.
        """
        token = token or CancellationToken()
        p = self.processor

        async with self._exclusive("reset"):
            started_at = utc_now()
            summary = self._summary("reset", started_at)
            if self._disabled(summary):
                return summary

            in_place = p.partial
            live_ctx = self._new_context(token, p.index_name, started_at)
            # Swapping requires the live index to exist as well
            await self._ensure_setup(live_ctx)
            if in_place:
                ctx = live_ctx
            else:
                ctx = self._new_context(token, f"{p.index_name}_NEW", started_at)
                await ctx.destination.delete_index(ctx.target_index)
                await p.setup(ctx)

            cursor = await self.deps.cursor_store.get(p.cursor_key, p.index_name)
            try:
                planned = await self._plan_full_range(
                    ctx, cursor, batch_size=p.read_batch_size, resume=False, persist=False
                )
            except OperationCancelledError:
                if not in_place:
                    await ctx.destination.delete_index(ctx.target_index)
                return self._cancelled_in_discovery(ctx, summary)
            if planned is not None:
                plan, _ = planned
                await self._run_batches(
                    ctx,
                    plan,
                    summary,
                    worker_count=p.effective_worker_count,
                    max_queue_size=p.effective_max_queue_size,
                )

            if not summary.succeeded:
                ctx.logger.error(
                    f"Reset of {self.name} incomplete ({summary.batches_failed} failed "
                    f"batch(es), cancelled={summary.cancelled}); live index left untouched"
                )
                if not in_place:
                    await ctx.destination.delete_index(ctx.target_index)
                return summary

            if not in_place:
                await ctx.destination.swap_indexes(p.index_name, ctx.target_index)
                await ctx.destination.delete_index(ctx.target_index)
                await self._drop_intents_before(ctx, started_at)
                ctx.logger.info(f"Swapped {ctx.target_index} into {p.index_name}")

            await self._advance_cursor(ctx, summary)
            ctx.logger.info(
                f"Reset {self.name}: {summary.documents_pushed} document(s) in "
                f"{summary.batches_total} batch(es)"
            )
            return summary

    async def _drop_intents_before(
        self, ctx: SearchIndexRunContext, started_at: datetime
    ) -> None:
        """Clear intents already covered by a rebuild that started at ``started_at``."""
        queue = self.deps.intent_queue
        index_name = self.processor.index_name
        intents = await queue.drain_all(index_name)
        newer = [intent for intent in intents if intent.enqueued_at >= started_at]
        if newer:
            await queue.requeue(newer)
        ctx.logger.info(
            f"Dropped {len(intents) - len(newer)} intent(s) of {index_name} covered by the rebuild"
        )

    async def update_sync(
        self, items: Sequence[QueueItem], token: Optional[CancellationToken] = None
    ) -> RunSummary:
        """Apply a small list of items right away, without touching the cursor.

        Deletes are applied first; the remaining ids are pulled and pushed in
        batches of 500 by 5 workers. Items that fail are queued for the next run.
        """
        token = token or CancellationToken()
        p = self.processor
        started_at = utc_now()
        summary = self._summary("update_sync", started_at)
        if not items:
            return summary
        if self._disabled(summary):
            return summary

        ctx = self._new_context(token, p.index_name, started_at)
        await self._ensure_setup(ctx)

        ledger = _IntentLedger(
            [
                UpdateIntent(index_name=p.index_name, entity_id=item.id, action=item.action)
                for item in items
            ],
            consumed=not p.partial,
        )
        async with metrics.track_run(self.name, "update_sync"):
            try:
                await self._apply_deletes(ctx, ledger, summary)
                await self._run_batches(
                    ctx,
                    plan_update_sets(ledger.update_ids, UPDATE_SYNC_BATCH_SIZE),
                    summary,
                    worker_count=UPDATE_SYNC_WORKER_COUNT,
                    max_queue_size=UPDATE_SYNC_WORKER_COUNT,
                    ledger=ledger,
                )
            finally:
                await self._return_unsettled(ctx, ledger)
        return summary

    async def process_queues(
        self,
        process_updates: bool = True,
        process_deletes: bool = True,
        token: Optional[CancellationToken] = None,
    ) -> RunSummary:
        """Apply queued intents only, without event-store discovery or cursor changes."""
        token = token or CancellationToken()
        p = self.processor

        async with self._exclusive("process_queues"):
            started_at = utc_now()
            summary = self._summary("process_queues", started_at)
            if self._disabled(summary):
                return summary

            ctx = self._new_context(token, p.index_name, started_at)
            await self._ensure_setup(ctx)
            ledger = await self._take_intents(ctx)
            try:
                if process_deletes:
                    await self._apply_deletes(ctx, ledger, summary)
                if process_updates:
                    await self._run_batches(
                        ctx,
                        plan_update_sets(
                            ledger.update_ids, min(p.read_batch_size, p.update_batch_size)
                        ),
                        summary,
                        worker_count=p.effective_worker_count,
                        max_queue_size=p.effective_max_queue_size,
                        ledger=ledger,
                    )
            finally:
                await self._return_unsettled(ctx, ledger)
            return summary

    async def get_data(
        self, ids: Sequence[int], token: Optional[CancellationToken] = None
    ) -> List[Document]:
        """Pull and transform ``ids`` without pushing anything."""
        token = token or CancellationToken()
        ctx = self._new_context(token, self.processor.index_name, utc_now())
        documents: List[Document] = []
        for batch in plan_update_sets(ids, self.processor.read_batch_size):
            prev: Optional[Any] = None
            step = 0
            while True:
                data = await self.processor.pull_data(ctx, batch, step, prev)
                if data is None:
                    break
                documents.extend(self.processor.transform(ctx, data))
                prev = data
                step += 1
        return documents

    async def status(self) -> Dict[str, Any]:
        """Cursor and queue state of the processor."""
        cursor = await self.deps.cursor_store.get(
            self.processor.cursor_key, self.processor.index_name
        )
        pending = await self.deps.intent_queue.size(self.processor.index_name)
        return {
            "name": self.name,
            "index_name": self.processor.index_name,
            "partial": self.processor.partial,
            "running": self.is_running,
            "pending_intents": pending,
            "cursor": cursor.model_dump(mode="json"),
        }
