"""Base search destination."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from indexsync.core.logging import ContextualLogger
from indexsync.core.logging import logger as default_logger

Document = Dict[str, Any]


class IndexSettings(BaseModel):
    """Settings an index is created and kept with."""

    primary_key: str = "id"
    searchable_attributes: List[str] = Field(default_factory=lambda: ["*"])
    filterable_attributes: List[str] = Field(default_factory=list)
    sortable_attributes: List[str] = Field(default_factory=list)
    ranking_rules: Optional[List[str]] = None


class BaseSearchDestination(ABC):
    """Interface the sync engine pushes documents through.

    Contract:
    - ``update_docs`` is an idempotent upsert keyed by the primary key
    - ``update_docs`` with no documents is a no-op
    - Raises TransientStoreError for failures worth retrying
    """

    def __init__(self):
        """Initialize the base destination."""
        self._logger: Optional[ContextualLogger] = None

    @property
    def logger(self):
        """Get the logger for this destination, falling back to default if not set."""
        if self._logger is not None:
            return self._logger
        return default_logger

    def set_logger(self, logger: ContextualLogger) -> None:
        """Set a contextual logger for this destination."""
        self._logger = logger

    @abstractmethod
    async def ensure_index(self, index_name: str, index_settings: IndexSettings) -> None:
        """Create the index if missing and bring its settings up to date."""
        pass

    @abstractmethod
    async def update_docs(
        self, index_name: str, documents: Sequence[Document], batch_size: int
    ) -> int:
        """Upsert documents in chunks of ``batch_size``.

        Returns:
            Number of documents sent
        """
        pass

    @abstractmethod
    async def delete_docs(self, index_name: str, ids: Sequence[int]) -> int:
        """Delete documents by primary key.

        Returns:
            Number of ids sent for deletion
        """
        pass

    @abstractmethod
    async def swap_indexes(self, index_name: str, other_index_name: str) -> None:
        """Atomically exchange the contents of two indexes."""
        pass

    @abstractmethod
    async def delete_index(self, index_name: str) -> None:
        """Delete an index if it exists."""
        pass
