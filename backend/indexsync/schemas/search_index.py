"""Schemas for search index synchronization."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from indexsync.core.datetime_utils import utc_now


class SearchIndexName(str, Enum):
    """Logical search indexes producers can queue updates for."""

    MODELS = "models"
    USERS = "users"
    COLLECTIONS = "collections"
    IMAGES = "images"


class IndexAction(str, Enum):
    """What a producer wants done with an entity in an index."""

    ADD = "Add"
    UPDATE = "Update"
    DELETE = "Delete"


class QueueItem(BaseModel):
    """A single item handed to ``queue_update``."""

    id: int = Field(..., description="Entity primary key")
    action: IndexAction = Field(default=IndexAction.UPDATE)


class UpdateIntent(BaseModel):
    """A pending "this entity changed" marker for one index."""

    model_config = ConfigDict(frozen=True)

    index_name: str
    entity_id: int
    action: IndexAction
    enqueued_at: datetime = Field(default_factory=utc_now)


class SyncCursor(BaseModel):
    """Resumable progress of one index.

    ``last_updated_at`` is None until a run has fully succeeded once.
    ``pull_step`` counts contiguous full-range chunks already pushed by the
    current (possibly interrupted) full-range pass over
    ``[range_start_id, range_end_id]``. ``range_started_at`` is the start time
    of the run that planned that pass; the cursor advances to it once the pass
    completes, even when a later run finishes it.
    """

    model_config = ConfigDict(from_attributes=True)

    key: str
    index_name: str
    last_updated_at: Optional[datetime] = None
    pull_step: int = 0
    range_start_id: Optional[int] = None
    range_end_id: Optional[int] = None
    range_started_at: Optional[datetime] = None

    @property
    def has_pending_range(self) -> bool:
        """Whether an interrupted full-range pass can be resumed."""
        return self.range_start_id is not None and self.range_end_id is not None


class FullRange(BaseModel):
    """Batch covering every eligible row with id in ``[start_id, end_id]``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["full_range"] = "full_range"
    start_id: int
    end_id: int
    step: int = Field(0, description="Chunk position within the full-range plan")

    @model_validator(mode="after")
    def validate_bounds(self) -> "FullRange":
        """Reject inverted ranges."""
        if self.end_id < self.start_id:
            raise ValueError(f"end_id {self.end_id} is before start_id {self.start_id}")
        return self

    def describe(self) -> str:
        """Short description for logs."""
        return f"range {self.start_id}-{self.end_id}"


class UpdateSet(BaseModel):
    """Batch covering an explicit list of entity ids."""

    model_config = ConfigDict(frozen=True)

    type: Literal["update_set"] = "update_set"
    ids: List[int]

    def describe(self) -> str:
        """Short description for logs."""
        if len(self.ids) <= 10:
            return f"ids {self.ids}"
        return f"{len(self.ids)} ids ({self.ids[0]}..{self.ids[-1]})"


Batch = Union[FullRange, UpdateSet]


class IdRange(BaseModel):
    """Result of a bounding query. Both ends are None for an empty table."""

    start_id: Optional[int] = None
    end_id: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        """Whether the bounding query found no rows."""
        return self.start_id is None or self.end_id is None


class RunSummary(BaseModel):
    """Outcome of one processor run."""

    index_name: str
    mode: Literal["update", "reset", "update_sync", "process_queues"]
    started_at: datetime
    skipped: bool = False
    batches_total: int = 0
    batches_failed: int = 0
    documents_pushed: int = 0
    documents_deleted: int = 0
    rows_skipped: int = 0
    cancelled: bool = False
    cursor_advanced: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether every batch of the run was pushed."""
        return self.batches_failed == 0 and not self.cancelled


class QueueUpdateRequest(BaseModel):
    """Items to queue for an index, or to apply right away when ``sync`` is set."""

    items: List[QueueItem] = Field(..., min_length=1)
    sync: bool = False


class QueueUpdateResponse(BaseModel):
    """Result of a queue request."""

    queued: int = 0
    summary: Optional[RunSummary] = None


class SearchIndexStatus(BaseModel):
    """Cursor and queue state of one registered processor."""

    name: str
    index_name: str
    partial: bool
    running: bool
    pending_intents: int
    cursor: SyncCursor
