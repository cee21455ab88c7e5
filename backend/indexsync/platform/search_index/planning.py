"""Batch planning.

Plans are generators so the runner only materializes as many batches as it
has room for in flight.
"""

import math
from typing import Iterable, Iterator, List, Sequence

from indexsync.schemas.search_index import FullRange, UpdateSet


def full_range_chunk_count(start_id: int, end_id: int, batch_size: int) -> int:
    """Number of chunks covering ``[start_id, end_id]``."""
    if end_id < start_id:
        return 0
    return math.ceil((end_id - start_id + 1) / batch_size)


def plan_full_range(
    start_id: int, end_id: int, batch_size: int, first_step: int = 0
) -> Iterator[FullRange]:
    """Yield contiguous, non-overlapping chunks covering ``[start_id, end_id]``.

    Args:
        start_id: First id of the range (inclusive)
        end_id: Last id of the range (inclusive)
        batch_size: Maximum ids per chunk
        first_step: Chunk to start from when resuming an interrupted pass

    Yields:
        FullRange chunks with their step number
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    total = full_range_chunk_count(start_id, end_id, batch_size)
    for step in range(first_step, total):
        chunk_start = start_id + step * batch_size
        chunk_end = min(chunk_start + batch_size - 1, end_id)
        yield FullRange(start_id=chunk_start, end_id=chunk_end, step=step)


def dedupe_ids(ids: Iterable[int]) -> List[int]:
    """Distinct ids in ascending order."""
    return sorted(set(ids))


def plan_update_sets(ids: Sequence[int], batch_size: int) -> Iterator[UpdateSet]:
    """Yield UpdateSet batches of at most ``batch_size`` distinct ids."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    unique = dedupe_ids(ids)
    for offset in range(0, len(unique), batch_size):
        yield UpdateSet(ids=unique[offset : offset + batch_size])
