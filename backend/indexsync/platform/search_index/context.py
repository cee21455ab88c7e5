"""Context objects for search index runs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from indexsync.core.logging import ContextualLogger
from indexsync.platform.clickhouse.client import ClickHouseClient
from indexsync.platform.concurrency.cancellable import CancellableExecutor
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.destinations._base import BaseSearchDestination
from indexsync.platform.search_index.cursors import CursorStore
from indexsync.platform.search_index.intent_queue import IntentQueue


@dataclass
class SyncDependencies:
    """Clients shared by every run in the process.

    ``destination`` and ``event_store`` may be None, meaning the integration is
    disabled: runs are skipped without a search engine, and event-store
    discovery falls back to queued intents only.
    """

    intent_queue: IntentQueue
    cursor_store: CursorStore
    executor: CancellableExecutor
    destination: Optional[BaseSearchDestination] = None
    event_store: Optional[ClickHouseClient] = None


class SearchIndexRunContext:
    """Everything one run hands to its processor's hooks.

    - index_name - logical index the run belongs to
    - target_index - index documents are written to (the swap index during reset)
    - token - cancellation token shared by every batch of the run
    - logger - contextual logger with index name and run id
    - executor - cancellable query executor for the primary store
    - event_store - analytical event store client, if configured
    - destination - search engine destination
    - started_at - run start time
    - advance_to - time the cursor moves to on success; the start of the run that
      planned a resumed full-range pass, otherwise ``started_at``
    """

    index_name: str
    target_index: str
    token: CancellationToken
    logger: ContextualLogger
    executor: CancellableExecutor
    event_store: Optional[ClickHouseClient]
    destination: Optional[BaseSearchDestination]
    started_at: datetime
    run_id: str

    def __init__(
        self,
        *,
        index_name: str,
        target_index: str,
        token: CancellationToken,
        logger: ContextualLogger,
        executor: CancellableExecutor,
        event_store: Optional[ClickHouseClient],
        destination: Optional[BaseSearchDestination],
        started_at: datetime,
        run_id: str,
    ):
        """Initialize the run context."""
        self.index_name = index_name
        self.target_index = target_index
        self.token = token
        self.logger = logger
        self.executor = executor
        self.event_store = event_store
        self.destination = destination
        self.started_at = started_at
        self.advance_to = started_at
        self.run_id = run_id
        self.rows_skipped = 0


@dataclass
class BatchOutcome:
    """Result of one batch pipeline."""

    documents_pushed: int = 0
    steps: int = 0
