"""Search index of published models."""

from typing import Any

from indexsync.platform.destinations._base import Document, IndexSettings
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.platform.search_index.indexes._base import PrimaryStoreProcessor, to_unix_ms
from indexsync.schemas.search_index import SearchIndexName


class ModelsProcessor(PrimaryStoreProcessor):
    """Published models with their creator and tags."""

    index_name = SearchIndexName.MODELS.value
    index_settings = IndexSettings(
        searchable_attributes=["name", "tags", "username"],
        filterable_attributes=["nsfw", "tags", "type", "userId", "username"],
        sortable_attributes=["createdAt", "lastVersionAt", "name"],
        ranking_rules=["sort", "words", "typo", "proximity", "attribute", "exactness"],
    )
    read_batch_size = 1000

    from_clause = '"Model" t JOIN "User" u ON u.id = t."userId"'
    eligibility = "t.status = 'Published' AND t.\"deletedAt\" IS NULL"
    updated_at_column = 't."updatedAt"'
    select_columns = (
        't.id, t.name, t.type, t.nsfw, t."userId", u.username, t."createdAt", '
        't."lastVersionAt", '
        "ARRAY(SELECT tg.name FROM \"TagsOnModels\" tom "
        'JOIN "Tag" tg ON tg.id = tom."tagId" WHERE tom."modelId" = t.id) AS tags'
    )

    def transform_row(self, row: Any) -> Document:
        """Map a model row to its document."""
        if not row["name"]:
            raise MalformedRowError(row["id"], "model has no name")
        return {
            "id": row["id"],
            "name": row["name"],
            "type": row["type"],
            "nsfw": bool(row["nsfw"]),
            "userId": row["userId"],
            "username": row["username"],
            "tags": sorted(row["tags"] or []),
            "createdAt": to_unix_ms(row["createdAt"]),
            "lastVersionAt": to_unix_ms(row["lastVersionAt"]),
        }
