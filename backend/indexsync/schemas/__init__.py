"""Pydantic schemas."""

from indexsync.schemas.maintenance import (
    BackfillSummary,
    PartitionGranularity,
    PartitionResult,
)
from indexsync.schemas.search_index import (
    Batch,
    FullRange,
    IdRange,
    IndexAction,
    QueueItem,
    QueueUpdateRequest,
    QueueUpdateResponse,
    RunSummary,
    SearchIndexName,
    SearchIndexStatus,
    SyncCursor,
    UpdateIntent,
    UpdateSet,
)

__all__ = [
    "BackfillSummary",
    "Batch",
    "FullRange",
    "IdRange",
    "IndexAction",
    "PartitionGranularity",
    "PartitionResult",
    "QueueItem",
    "QueueUpdateRequest",
    "QueueUpdateResponse",
    "RunSummary",
    "SearchIndexName",
    "SearchIndexStatus",
    "SyncCursor",
    "UpdateIntent",
    "UpdateSet",
]
