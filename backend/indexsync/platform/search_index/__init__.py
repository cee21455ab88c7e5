"""Incremental search index synchronization."""

from indexsync.platform.search_index.config import SyncRunConfig
from indexsync.platform.search_index.context import SearchIndexRunContext, SyncDependencies
from indexsync.platform.search_index.processor import SearchIndexProcessor
from indexsync.platform.search_index.registry import IndexRegistry
from indexsync.platform.search_index.runner import IndexSyncRunner

__all__ = [
    "IndexRegistry",
    "IndexSyncRunner",
    "SearchIndexProcessor",
    "SearchIndexRunContext",
    "SyncDependencies",
    "SyncRunConfig",
]
