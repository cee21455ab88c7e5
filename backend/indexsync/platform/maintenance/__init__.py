"""Batch maintenance jobs built on the concurrency limiter."""

from indexsync.platform.maintenance.backfill import backfill_partitions, iter_partitions
from indexsync.platform.maintenance.data_processor import (
    BatchProcessingError,
    batch_processor,
    data_processor,
)

__all__ = [
    "BatchProcessingError",
    "backfill_partitions",
    "batch_processor",
    "data_processor",
    "iter_partitions",
]
