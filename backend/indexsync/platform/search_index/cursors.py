"""Persistence of per-index sync cursors."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from indexsync import crud
from indexsync.db.session import get_db_context
from indexsync.schemas.search_index import SyncCursor


def _latest(current: Optional[datetime], new: Optional[datetime]) -> Optional[datetime]:
    if current is None:
        return new
    if new is None:
        return current
    return max(current, new)


class CursorStore(ABC):
    """Loads and saves cursors. ``last_updated_at`` never moves backwards."""

    @abstractmethod
    async def get(self, key: str, index_name: str) -> SyncCursor:
        """Return the cursor for ``key``; a fresh one if none was saved."""
        pass

    @abstractmethod
    async def save(self, cursor: SyncCursor) -> SyncCursor:
        """Persist ``cursor`` and return the stored value."""
        pass

    @abstractmethod
    async def list_all(self) -> List[SyncCursor]:
        """Return every stored cursor."""
        pass


class InMemoryCursorStore(CursorStore):
    """Process-local cursor store."""

    def __init__(self):
        """Create an empty store."""
        self._cursors: Dict[str, SyncCursor] = {}

    async def get(self, key: str, index_name: str) -> SyncCursor:
        """Return a copy of the stored cursor."""
        stored = self._cursors.get(key)
        if stored is None:
            return SyncCursor(key=key, index_name=index_name)
        return stored.model_copy()

    async def save(self, cursor: SyncCursor) -> SyncCursor:
        """Store the cursor, keeping the later ``last_updated_at``."""
        current = self._cursors.get(cursor.key)
        merged = cursor.model_copy(
            update={
                "last_updated_at": _latest(
                    current.last_updated_at if current else None, cursor.last_updated_at
                )
            }
        )
        self._cursors[cursor.key] = merged
        return merged.model_copy()

    async def list_all(self) -> List[SyncCursor]:
        """Return copies of every cursor."""
        return [cursor.model_copy() for _, cursor in sorted(self._cursors.items())]


class SqlCursorStore(CursorStore):
    """Cursor store backed by the ``search_index_cursor`` table."""

    async def get(self, key: str, index_name: str) -> SyncCursor:
        """Load the cursor row for ``key``."""
        async with get_db_context() as db:
            row = await crud.search_index_cursor.get_by_key(db, key)
        if row is None:
            return SyncCursor(key=key, index_name=index_name)
        return SyncCursor.model_validate(row)

    async def save(self, cursor: SyncCursor) -> SyncCursor:
        """Upsert the cursor row and commit."""
        async with get_db_context() as db:
            row = await crud.search_index_cursor.upsert(
                db,
                key=cursor.key,
                index_name=cursor.index_name,
                last_updated_at=cursor.last_updated_at,
                pull_step=cursor.pull_step,
                range_start_id=cursor.range_start_id,
                range_end_id=cursor.range_end_id,
                range_started_at=cursor.range_started_at,
            )
            stored = SyncCursor.model_validate(row)
            await db.commit()
        return stored

    async def list_all(self) -> List[SyncCursor]:
        """Load every cursor row."""
        async with get_db_context() as db:
            rows = await crud.search_index_cursor.get_all(db)
        return [SyncCursor.model_validate(row) for row in rows]
