"""Bounded concurrency and cooperative cancellation."""

from indexsync.platform.concurrency.cancellable import (
    CancellableExecutor,
    CancellableQuery,
    run_cancellable,
)
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.concurrency.limiter import (
    ConcurrencyLimiter,
    LimiterStats,
    PriorityTaskQueue,
    TaskPriority,
    limit_concurrency,
)

__all__ = [
    "CancellableExecutor",
    "CancellableQuery",
    "CancellationToken",
    "ConcurrencyLimiter",
    "LimiterStats",
    "PriorityTaskQueue",
    "TaskPriority",
    "limit_concurrency",
    "run_cancellable",
]
