"""Search index of scanned, posted images.

Images are pulled in two rounds per batch: the image rows first, then the tags
of the images that came back. Each round is pushed on its own, the second as a
partial update carrying only ``tags``.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from indexsync.platform.destinations._base import Document, IndexSettings
from indexsync.platform.search_index.context import SearchIndexRunContext
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.platform.search_index.indexes._base import PrimaryStoreProcessor, to_unix_ms
from indexsync.schemas.search_index import Batch, SearchIndexName

IMAGE_TAGS_QUERY = (
    'SELECT toi."imageId" AS id, array_agg(tg.name ORDER BY tg.name) AS tags '
    'FROM "TagsOnImage" toi JOIN "Tag" tg ON tg.id = toi."tagId" '
    'WHERE toi."imageId" = ANY($1::int[]) AND NOT toi.disabled '
    'GROUP BY toi."imageId"'
)


def image_eligibility(alias: str) -> str:
    """Condition for an image row aliased ``alias`` to be indexed."""
    return f"{alias}.\"postId\" IS NOT NULL AND {alias}.ingestion = 'Scanned'"


@dataclass
class ImageTags:
    """Tags of one image, pulled in the second round of a batch."""

    id: int
    tags: List[str] = field(default_factory=list)


class ImagesProcessor(PrimaryStoreProcessor):
    """Images attached to a post, once ingestion scanned them."""

    index_name = SearchIndexName.IMAGES.value
    index_settings = IndexSettings(
        searchable_attributes=["prompt"],
        filterable_attributes=[
            "hasMeta",
            "nsfwLevel",
            "postId",
            "sortAtUnix",
            "tags",
            "type",
            "userId",
        ],
        sortable_attributes=["collectedCount", "commentCount", "reactionCount", "sortAt"],
    )
    read_batch_size = 10_000
    document_batch_size = 10_000

    from_clause = '"Image" t'
    eligibility = image_eligibility("t")
    updated_at_column = 't."updatedAt"'
    select_columns = (
        "t.id, t.url, t.type, t.width, t.height, t.\"nsfwLevel\", t.\"userId\", "
        "t.\"postId\", t.meta->>'prompt' AS prompt, (t.meta IS NOT NULL) AS \"hasMeta\", "
        'COALESCE(t."sortAt", t."createdAt") AS "sortAt"'
    )

    async def pull_data(
        self, ctx: SearchIndexRunContext, batch: Batch, step: int, prev: Optional[Any]
    ) -> Optional[Any]:
        """Image rows on step 0, their tags on step 1."""
        if step == 0:
            return await self.pull_rows(ctx, batch)
        if step == 1 and prev:
            # Only rows that became documents get their tags
            ids = [row["id"] for row in prev if self._has_url(row)]
            if not ids:
                return None
            rows = await self.query(ctx, IMAGE_TAGS_QUERY, ids)
            return [ImageTags(id=row["id"], tags=list(row["tags"] or [])) for row in rows]
        return None

    @staticmethod
    def _has_url(row: Any) -> bool:
        return bool(row["url"])

    def transform_row(self, row: Any) -> Document:
        """Map an image row, or the tags of an image, to a document."""
        if isinstance(row, ImageTags):
            return {"id": row.id, "tags": row.tags}
        if not self._has_url(row):
            raise MalformedRowError(row["id"], "image has no url")
        return {
            "id": row["id"],
            "url": row["url"],
            "type": row["type"],
            "width": row["width"],
            "height": row["height"],
            "nsfwLevel": row["nsfwLevel"],
            "userId": row["userId"],
            "postId": row["postId"],
            "prompt": row["prompt"] or "",
            "hasMeta": bool(row["hasMeta"]),
            "sortAt": row["sortAt"].isoformat() if row["sortAt"] else None,
            "sortAtUnix": to_unix_ms(row["sortAt"]),
        }
