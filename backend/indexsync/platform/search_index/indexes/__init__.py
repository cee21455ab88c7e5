"""Search indexes of the platform."""

from typing import List, Type

from indexsync.platform.search_index.indexes.collections import CollectionsProcessor
from indexsync.platform.search_index.indexes.images import ImagesProcessor
from indexsync.platform.search_index.indexes.metrics_images import MetricsImagesProcessor
from indexsync.platform.search_index.indexes.models import ModelsProcessor
from indexsync.platform.search_index.indexes.users import UsersProcessor
from indexsync.platform.search_index.processor import SearchIndexProcessor

DEFAULT_PROCESSORS: List[Type[SearchIndexProcessor]] = [
    ModelsProcessor,
    UsersProcessor,
    CollectionsProcessor,
    ImagesProcessor,
    MetricsImagesProcessor,
]

__all__ = [
    "DEFAULT_PROCESSORS",
    "CollectionsProcessor",
    "ImagesProcessor",
    "MetricsImagesProcessor",
    "ModelsProcessor",
    "UsersProcessor",
]
