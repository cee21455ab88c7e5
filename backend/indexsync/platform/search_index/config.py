"""Run configuration for search index syncs."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class SyncRunConfig(BaseModel):
    """Per-run overrides of a processor's defaults."""

    force: bool = Field(False, description="Ignore the update interval")
    full_resync: bool = Field(
        False, description="Rebuild the full id range in place even though a cursor exists"
    )
    discover_changes: bool = Field(
        True, description="Query the event store for ids changed since the cursor"
    )
    process_intents: bool = Field(True, description="Drain queued update intents")
    process_deletes: bool = Field(True, description="Apply Delete intents")
    worker_count: Optional[int] = Field(None, ge=1, description="Parallel batch pipelines")
    max_queue_size: Optional[int] = Field(None, ge=1, description="Cap on in-flight batches")
    read_batch_size: Optional[int] = Field(None, ge=1, description="Ids per pulled batch")

    @model_validator(mode="after")
    def validate_config_logic(self) -> "SyncRunConfig":
        """A run must have something to do."""
        if not (self.full_resync or self.discover_changes or self.process_intents):
            raise ValueError(
                "full_resync, discover_changes and process_intents cannot all be disabled"
            )
        return self

    @classmethod
    def default(cls) -> "SyncRunConfig":
        """Incremental run: event-store changes plus queued intents."""
        return cls()

    @classmethod
    def full_resync_run(cls) -> "SyncRunConfig":
        """Re-push the whole id range in place, then advance the cursor."""
        return cls(force=True, full_resync=True)

    @classmethod
    def intents_only(cls) -> "SyncRunConfig":
        """Only drain the intent queue, skip event-store discovery."""
        return cls(force=True, discover_changes=False)
