"""Run a job over an id range, or a list of id batches, with bounded concurrency.

Used by admin migrations and metadata repair jobs. Failures are logged per
batch and never stop sibling batches; cancelling the token stops new batches
from starting and reaches into in-flight store queries registered on it.
"""

import time
from typing import Any, Awaitable, Callable, Optional, Sequence

from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import ContextualLogger, logger as default_logger
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.concurrency.limiter import LimiterStats, limit_concurrency
from indexsync.platform.search_index.planning import plan_full_range
from indexsync.schemas.search_index import FullRange, IdRange

RangeFetcher = Callable[[CancellationToken], Awaitable[IdRange]]
RangeHandler = Callable[[FullRange, CancellationToken], Awaitable[Any]]
BatchHandler = Callable[[Sequence[int], int, int, CancellationToken], Awaitable[Any]]


class BatchProcessingError(Exception):
    """Raised when one batch of a maintenance job fails."""

    def __init__(self, label: str, duration: float, cause: Exception):
        """Wrap the batch's failure with its position and duration."""
        self.label = label
        self.duration = duration
        super().__init__(f"Batch {label} failed after {duration:.2f}s: {cause}")


async def _run_logged(label: str, run: Callable[[], Awaitable[Any]]) -> None:
    start = time.monotonic()
    try:
        await run()
    except OperationCancelledError:
        raise
    except Exception as e:
        raise BatchProcessingError(label, time.monotonic() - start, e) from e


async def data_processor(
    *,
    fetch_range: RangeFetcher,
    process: RangeHandler,
    batch_size: int,
    concurrency: int,
    token: Optional[CancellationToken] = None,
    range_start: Optional[int] = None,
    range_end: Optional[int] = None,
    logger: Optional[ContextualLogger] = None,
    name: str = "data_processor",
) -> LimiterStats:
    """Split an id range into batches and run ``process`` on each.

    Args:
        fetch_range: Bounding query, only called when either end is not given
        process: Handler called with each FullRange and the token
        batch_size: Ids per batch
        concurrency: Maximum batches in flight
        token: Cancellation token of the job
        range_start: First id, overriding the fetched range
        range_end: Last id, overriding the fetched range
        logger: Logger for progress and failures
        name: Job name used in log messages

    Returns:
        The limiter's counters; ``failed`` counts failed batches
    """
    token = token or CancellationToken()
    logger = logger or default_logger
    if token.stopped:
        return LimiterStats()

    start, end = range_start, range_end
    if start is None or end is None:
        fetched = await fetch_range(token)
        start = fetched.start_id if start is None else start
        end = fetched.end_id if end is None else end
    if start is None or end is None or end < start:
        logger.info(f"{name}: nothing to process")
        return LimiterStats()

    logger.info(f"{name}: processing ids {start}-{end} in batches of {batch_size}")
    plan = plan_full_range(start, end, batch_size)

    def next_task():
        if token.stopped:
            return None
        batch = next(plan, None)
        if batch is None:
            return None
        return lambda: _run_logged(batch.describe(), lambda: process(batch, token))

    stats = await limit_concurrency(next_task, concurrency, token=token, logger=logger, name=name)
    logger.info(
        f"{name}: {stats.succeeded} batch(es) done, {stats.failed} failed "
        f"in {stats.elapsed_seconds:.2f}s"
    )
    return stats


async def batch_processor(
    *,
    batches: Sequence[Sequence[int]],
    process: BatchHandler,
    concurrency: int,
    token: Optional[CancellationToken] = None,
    logger: Optional[ContextualLogger] = None,
    name: str = "batch_processor",
) -> LimiterStats:
    """Run ``process`` over pre-built id batches.

    ``process`` receives the batch, its 1-based number, the batch count and
    the token.
    """
    token = token or CancellationToken()
    logger = logger or default_logger
    batch_count = len(batches)
    cursor = 0

    def next_task():
        nonlocal cursor
        if token.stopped or cursor >= batch_count:
            return None
        batch = batches[cursor]
        cursor += 1
        batch_number = cursor
        return lambda: _run_logged(
            f"{batch_number}/{batch_count}",
            lambda: process(batch, batch_number, batch_count, token),
        )

    return await limit_concurrency(next_task, concurrency, token=token, logger=logger, name=name)
