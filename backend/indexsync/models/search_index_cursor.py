"""Search index cursor model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from indexsync.models._base import Base


class SearchIndexCursor(Base):
    """Persisted progress of one search index (or one named re-index job).

    ``last_updated_at`` is the start time of the last fully successful run and
    is NULL until the first one completes, which makes the next run a full-range
    pass. ``pull_step`` is the number of contiguous full-range chunks already
    pushed by an interrupted full-range run, so it can resume from there;
    ``range_started_at`` records when that pass was planned.
    """

    __tablename__ = "search_index_cursor"

    key: Mapped[str] = mapped_column(String(200), nullable=False)
    index_name: Mapped[str] = mapped_column(String(200), nullable=False)
    last_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pull_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    range_start_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    range_end_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    range_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (UniqueConstraint("key", name="uq_search_index_cursor_key"),)
