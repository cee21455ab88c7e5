"""Engagement metrics patched onto documents of the images index."""

from typing import Any

from indexsync.platform.destinations._base import Document
from indexsync.platform.search_index.indexes._base import PrimaryStoreProcessor
from indexsync.platform.search_index.indexes.images import ImagesProcessor, image_eligibility
from indexsync.schemas.search_index import SearchIndexName


class MetricsImagesProcessor(PrimaryStoreProcessor):
    """Partial processor of the images index.

    Changed images are found through metric events in ClickHouse; only the
    counters are pushed, so the documents written by ``ImagesProcessor`` keep
    their other fields. Rows are joined to their image and filtered like the
    images index, so metrics never create documents for images it excludes.
    """

    index_name = SearchIndexName.IMAGES.value
    job_name = "metrics_images"
    partial = True
    # Both processors set up the same index
    index_settings = ImagesProcessor.index_settings
    read_batch_size = 10_000
    document_batch_size = 10_000

    event_entity_type = "Image"

    from_clause = '"ImageMetric" t JOIN "Image" i ON i.id = t."imageId"'
    eligibility = f"t.timeframe = 'AllTime' AND {image_eligibility('i')}"
    id_column = 't."imageId"'
    select_columns = (
        't."imageId" AS id, t."reactionCount", t."commentCount", t."collectedCount"'
    )

    def transform_row(self, row: Any) -> Document:
        return {
            "id": row["id"],
            "reactionCount": row["reactionCount"] or 0,
            "commentCount": row["commentCount"] or 0,
            "collectedCount": row["collectedCount"] or 0,
        }
