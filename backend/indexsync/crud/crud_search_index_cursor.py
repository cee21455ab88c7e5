"""CRUD operations for search index cursors."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from indexsync.models.search_index_cursor import SearchIndexCursor


class CRUDSearchIndexCursor:
    """CRUD operations for search index cursors.

    Cursors are keyed by ``key`` (the index name, or a named re-index job) and
    ``last_updated_at`` only ever moves forward.
    """

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = SearchIndexCursor

    async def get_by_key(self, db: AsyncSession, key: str) -> Optional[SearchIndexCursor]:
        """Get a cursor by key.

        Args:
            db: Database session
            key: Cursor key

        Returns:
            SearchIndexCursor if found, None otherwise
        """
        result = await db.execute(select(self.model).where(self.model.key == key))
        return result.scalar_one_or_none()

    async def get_all(self, db: AsyncSession) -> List[SearchIndexCursor]:
        """Get every cursor ordered by key."""
        result = await db.execute(select(self.model).order_by(self.model.key))
        return list(result.scalars().all())

    async def upsert(
        self,
        db: AsyncSession,
        *,
        key: str,
        index_name: str,
        last_updated_at: Optional[datetime],
        pull_step: int,
        range_start_id: Optional[int],
        range_end_id: Optional[int],
        range_started_at: Optional[datetime] = None,
    ) -> SearchIndexCursor:
        """Insert or update a cursor.

        ``last_updated_at`` is merged with GREATEST so a stale writer can never
        move it backwards. The caller commits.

        Args:
            db: Database session
            key: Cursor key
            index_name: Index the cursor belongs to
            last_updated_at: New high-water mark, or None to keep the current one
            pull_step: Contiguous committed chunks of the pending full-range pass
            range_start_id: Start of the pending full-range pass
            range_end_id: End of the pending full-range pass
            range_started_at: Start time of the run that planned the pending pass

        Returns:
            The stored cursor
        """
        stmt = insert(self.model).values(
            key=key,
            index_name=index_name,
            last_updated_at=last_updated_at,
            pull_step=pull_step,
            range_start_id=range_start_id,
            range_end_id=range_end_id,
            range_started_at=range_started_at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_search_index_cursor_key",
            set_={
                "last_updated_at": func.greatest(
                    self.model.last_updated_at, stmt.excluded.last_updated_at
                ),
                "pull_step": stmt.excluded.pull_step,
                "range_start_id": stmt.excluded.range_start_id,
                "range_end_id": stmt.excluded.range_end_id,
                "range_started_at": stmt.excluded.range_started_at,
                "modified_at": func.now(),
            },
        ).returning(self.model)
        result = await db.execute(stmt)
        return result.scalar_one()

    async def delete_by_key(self, db: AsyncSession, key: str) -> None:
        """Remove a cursor so the next run is a full-range pass."""
        cursor = await self.get_by_key(db, key)
        if cursor is not None:
            await db.delete(cursor)


search_index_cursor = CRUDSearchIndexCursor()
