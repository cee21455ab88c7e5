"""Schemas for maintenance jobs."""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PartitionGranularity(str, Enum):
    """Size of one backfill partition."""

    DAY = "day"
    MONTH = "month"


class PartitionResult(BaseModel):
    """Outcome of one backfill partition."""

    partition: date
    success: bool
    attempts: int
    duration_seconds: float
    error: Optional[str] = None


class BackfillSummary(BaseModel):
    """Per-partition results of a backfill, with success and failure counts."""

    success: int = 0
    failed: int = 0
    cancelled: bool = False
    results: List[PartitionResult] = Field(default_factory=list)

    @property
    def failed_partitions(self) -> List[date]:
        """Partitions that failed every attempt."""
        return [result.partition for result in self.results if not result.success]
