"""Time-partitioned backfills.

Partitions run one after another. Each one is retried with exponential
backoff; a partition that keeps failing is recorded and the backfill moves on,
so the caller gets a summary of what to re-run instead of a first error.
"""

import time
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Iterator, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import ContextualLogger, logger as default_logger
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.schemas.maintenance import BackfillSummary, PartitionGranularity, PartitionResult

PartitionRunner = Callable[[date, CancellationToken], Awaitable[Any]]


def _next_month(day: date) -> date:
    return (day.replace(day=28) + timedelta(days=4)).replace(day=1)


def iter_partitions(
    start: date, end: date, granularity: PartitionGranularity
) -> Iterator[date]:
    """Yield the first day of every partition overlapping ``[start, end]``."""
    if granularity == PartitionGranularity.MONTH:
        current = start.replace(day=1)
        while current <= end:
            yield current
            current = _next_month(current)
        return
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


async def backfill_partitions(
    *,
    start: date,
    end: date,
    run_partition: PartitionRunner,
    granularity: PartitionGranularity = PartitionGranularity.DAY,
    token: Optional[CancellationToken] = None,
    max_attempts: int = 3,
    retry_base_seconds: float = 5.0,
    logger: Optional[ContextualLogger] = None,
) -> BackfillSummary:
    """Run ``run_partition`` for every partition between ``start`` and ``end``.

    Args:
        start: First day to backfill
        end: Last day to backfill (inclusive)
        run_partition: Job for one partition, called with its first day
        granularity: Day or month partitions
        token: Cancellation token; stops the backfill between partitions
        max_attempts: Attempts per partition
        retry_base_seconds: First backoff delay, doubled on every retry
        logger: Logger for progress

    Returns:
        Per-partition results with success and failure counts
    """
    token = token or CancellationToken()
    logger = logger or default_logger
    summary = BackfillSummary()

    def log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Partition attempt {retry_state.attempt_number}/{max_attempts} failed: {error}"
        )

    for partition in iter_partitions(start, end, granularity):
        if token.stopped:
            summary.cancelled = True
            break

        attempts = 0
        started = time.monotonic()
        error: Optional[Exception] = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=retry_base_seconds),
            retry=retry_if_not_exception_type(OperationCancelledError),
            before_sleep=log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    await run_partition(partition, token)
        except OperationCancelledError:
            summary.cancelled = True
            logger.info(f"Backfill cancelled during partition {partition.isoformat()}")
            break
        except Exception as e:
            error = e

        result = PartitionResult(
            partition=partition,
            success=error is None,
            attempts=attempts,
            duration_seconds=time.monotonic() - started,
            error=str(error) if error is not None else None,
        )
        summary.results.append(result)
        if result.success:
            summary.success += 1
            logger.info(
                f"Partition {partition.isoformat()} done in {result.duration_seconds:.2f}s"
            )
        else:
            summary.failed += 1
            logger.error(
                f"Partition {partition.isoformat()} failed after {attempts} attempt(s): {error}"
            )

    logger.info(
        f"Backfill {start.isoformat()}..{end.isoformat()} finished: "
        f"{summary.success} succeeded, {summary.failed} failed"
    )
    return summary
