"""ORM models."""

from indexsync.models._base import Base
from indexsync.models.search_index_cursor import SearchIndexCursor

__all__ = ["Base", "SearchIndexCursor"]
